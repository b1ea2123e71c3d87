from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from app.config import settings
from app.logger.logger import logger


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ResourceNotFound(HTTPException):
    """Missing row or a row owned by another account; both surface as 404."""

    def __init__(self, detail: str = "Resource not found or not authorized") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InsufficientBalance(HTTPException):
    def __init__(self, remaining: int, required: int, pool: str = "credits") -> None:
        self.remaining = remaining
        self.required = required
        self.pool = pool
        label = "AI credits" if pool == "bonus" else "credits"
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=f"Insufficient {label}: {remaining} remaining, {required} required",
        )


class LedgerUnavailable(HTTPException):
    def __init__(self, detail: str = "Credits ledger is temporarily unavailable") -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class ExternalServiceError(HTTPException):
    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.message = message
        self.details = details or {}
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=message)

    def __str__(self) -> str:
        return self.message


def server_error_message(err: Exception) -> str:
    """Message for an unexpected route failure; details are hidden in production."""
    logger.error(f"Unhandled error: {err!r}")
    if settings.is_production:
        return "Internal server error"
    return str(err) or err.__class__.__name__
