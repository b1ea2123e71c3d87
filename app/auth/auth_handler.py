import uuid
from dataclasses import dataclass

import bcrypt
from fastapi import Request
from fastapi.security import HTTPBearer

from app.auth.token_handler import JWTTokenHandler
from app.common.exceptions import Unauthorized
from app.config import settings


@dataclass(frozen=True)
class AuthenticatedAccount:
    """Identity resolved at the request boundary and handed to services."""

    id: uuid.UUID
    email: str


class AuthHandler(HTTPBearer):
    """
    FastAPI dependency that resolves the caller into an AuthenticatedAccount.

    The session token is read from the ``Authorization: Bearer`` header first
    and from the session cookie otherwise.
    """

    def __init__(self, token_handler: JWTTokenHandler = None) -> None:
        super().__init__(auto_error=False)
        self.token_handler = token_handler or JWTTokenHandler()

    async def __call__(self, request: Request) -> AuthenticatedAccount:
        credentials = await super().__call__(request)
        token = (
            credentials.credentials
            if credentials
            else request.cookies.get(settings.SESSION_COOKIE_NAME)
        )
        if not token:
            raise Unauthorized("Not authenticated")
        return self.verify_jwt(token)

    def verify_jwt(self, token: str) -> AuthenticatedAccount:
        payload = self.token_handler.decode_access_token(token)
        try:
            account_id = uuid.UUID(payload["sub"])
        except (KeyError, ValueError):
            raise Unauthorized("Invalid session token")
        return AuthenticatedAccount(id=account_id, email=payload.get("email", ""))

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8"), hashed_password.encode("utf-8")
            )
        except ValueError:
            # malformed stored hash
            return False
