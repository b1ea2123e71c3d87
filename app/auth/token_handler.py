from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt

from app.common.exceptions import Unauthorized
from app.config import settings


class JWTTokenHandler:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ) -> None:
        self.SECRET_KEY = secret_key or settings.JWT_SECRET_KEY
        self.ALGORITHM = algorithm or settings.JWT_ALGORITHM
        self.ACCESS_TOKEN_EXPIRE_MINUTES = (
            expire_minutes or settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    def create_access_token(self, data: Dict) -> str:
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update(
            {
                "iat": now,
                "exp": now + timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES),
                "type": "access",
            }
        )
        return jwt.encode(to_encode, self.SECRET_KEY, algorithm=self.ALGORITHM)

    def decode_access_token(self, token: str) -> Dict:
        try:
            payload = jwt.decode(token, self.SECRET_KEY, algorithms=[self.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Session has expired")
        except jwt.InvalidTokenError:
            raise Unauthorized("Invalid session token")

        if payload.get("type") != "access" or not payload.get("sub"):
            raise Unauthorized("Invalid session token")
        return payload
