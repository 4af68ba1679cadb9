from fastapi import HTTPException

from core.services.exceptions import (
    ChamberError,
    ChamberNotFound,
    InvalidTokenAccount,
    StaleRecord,
    TransactionRevertedError,
    UserAccountAlreadyExists,
    UserAccountNotFound,
)

_STATUS_BY_ERROR = {
    ChamberNotFound: 404,
    UserAccountNotFound: 404,
    UserAccountAlreadyExists: 409,
    StaleRecord: 409,
    InvalidTokenAccount: 403,
}


def to_http_error(exc: Exception, action: str) -> HTTPException:
    """
    Map a failed chamber request to the HTTP error returned to the caller.
    """
    if isinstance(exc, ChamberError):
        return HTTPException(status_code=_STATUS_BY_ERROR.get(type(exc), 400), detail=exc.as_dict())
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, TransactionRevertedError):
        return HTTPException(
            status_code=500,
            detail={"error": "reverted_on_chain", "tx": exc.tx_hash, "receipt": exc.receipt},
        )
    return HTTPException(status_code=500, detail=f"Failed to {action}: {exc}")
