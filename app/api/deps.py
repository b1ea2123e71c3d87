import hmac
from typing import Optional

from fastapi import Request

from app.common.exceptions import Unauthorized
from app.config import settings
from app.logger.logger import logger


def is_trusted_scheduler(
    authorization: Optional[str], trusted_header_value: Optional[str]
) -> bool:
    if trusted_header_value == settings.CRON_TRUSTED_HEADER_VALUE:
        return True
    if settings.CRON_SECRET and authorization:
        return hmac.compare_digest(authorization, f"Bearer {settings.CRON_SECRET}")
    return False


async def verify_scheduler_caller(request: Request) -> None:
    """
    Dependency that only lets the external scheduler through.

    Accepted callers carry either the platform's trusted cron header
    (``x-vercel-cron: 1`` by default) or ``Authorization: Bearer <CRON_SECRET>``.
    Everything else is rejected with 401.
    """
    authorization = request.headers.get("authorization")
    trusted_header_value = request.headers.get(settings.CRON_TRUSTED_HEADER)

    if not is_trusted_scheduler(authorization, trusted_header_value):
        logger.warning(f"Unauthorized scheduler invocation on {request.url.path}")
        raise Unauthorized("Unauthorized - Invalid cron secret")
