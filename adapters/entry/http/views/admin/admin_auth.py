from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Optional, Set, Tuple

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from privy import PrivyAPI

from config import get_settings

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminPrincipal:
    """
    Chamber operator authenticated through a Privy access token.
    """

    privy_did: str
    wallet_address: str


@lru_cache(maxsize=1)
def _admin_allowlist() -> Set[str]:
    return set(get_settings().admin_wallets)


@lru_cache(maxsize=1)
def _privy_client() -> PrivyAPI:
    s = get_settings()
    if not s.PRIVY_APP_ID or not s.PRIVY_APP_SECRET:
        raise RuntimeError("PRIVY_APP_ID and PRIVY_APP_SECRET must be configured")
    return PrivyAPI(app_id=s.PRIVY_APP_ID, app_secret=s.PRIVY_APP_SECRET)


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _candidate_wallets(user: Any) -> Iterable[Any]:
    yield _get(user, "wallet_address")
    yield _get(user, "address")
    yield _get(_get(user, "wallet"), "address")
    for w in _get(user, "wallets") or []:
        yield _get(w, "address")
    for acc in _get(user, "linked_accounts") or []:
        if (_get(acc, "type") or "").lower() == "wallet":
            yield _get(acc, "address")


def wallet_of(user: Any) -> str:
    """
    First 0x address found on a Privy user, lower-cased; "" when none.
    """
    for addr in _candidate_wallets(user):
        if isinstance(addr, str) and addr.startswith("0x"):
            return addr.lower()
    return ""


def verify_bearer(creds: Optional[HTTPAuthorizationCredentials]) -> Tuple[str, str]:
    """
    Verify a Privy access token; returns (privy_did, wallet). 401 on a bad
    token, 403 when the user has no linked wallet.
    """
    if not creds or not creds.credentials:
        raise HTTPException(status_code=401, detail="Missing Authorization bearer token.")

    try:
        client = _privy_client()
        claims = client.users.verify_access_token(auth_token=creds.credentials)
        privy_did = str(_get(claims, "user_id") or "")
        if not privy_did:
            raise HTTPException(status_code=401, detail="Invalid token (missing user_id).")

        wallet = wallet_of(client.users.get(privy_did))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Authentication failed: {e}") from e

    if not wallet:
        raise HTTPException(status_code=403, detail="Token verified but user has no linked wallet address.")
    return privy_did, wallet


def require_admin(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> AdminPrincipal:
    privy_did, wallet = verify_bearer(creds)
    if wallet not in _admin_allowlist():
        raise HTTPException(status_code=403, detail="Not authorized (wallet not allowlisted).")

    return AdminPrincipal(privy_did=privy_did, wallet_address=wallet)
