from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from adapters.entry.http.views.admin.admin_auth import bearer, verify_bearer


@dataclass(frozen=True)
class UserPrincipal:
    """
    Chamber user authenticated through a Privy access token.
    """

    privy_did: str
    wallet_address: str

    def require_owner(self, user: str) -> None:
        if (user or "").lower() != self.wallet_address:
            raise HTTPException(status_code=403, detail="Not authorized (request is for another wallet).")


def require_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> UserPrincipal:
    privy_did, wallet = verify_bearer(creds)
    return UserPrincipal(privy_did=privy_did, wallet_address=wallet)
