from datetime import datetime, timezone
from typing import Dict

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.credits.service import CreditLedgerService
from app.api.notifications.service import NotificationService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.auth.token_handler import JWTTokenHandler
from app.common.exceptions import Unauthorized
from app.database import db_session
from app.logger.logger import logger
from app.models import User
from app.schemas import LoginRequest, SignupRequest


class AuthService:
    def __init__(
        self,
        session: AsyncSession = Depends(db_session),
        token_handler: JWTTokenHandler = None,
    ) -> None:
        self.session = session
        self.token_handler = token_handler or JWTTokenHandler()

    async def get_user_by_email(self, email: str) -> User:
        result = await self.session.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    def _issue_token(self, user: User) -> str:
        return self.token_handler.create_access_token(
            {"sub": str(user.id), "email": user.email}
        )

    async def signup(self, new_user: SignupRequest) -> Dict:
        if await self.get_user_by_email(new_user.email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email already exists",
            )

        user = User(
            email=new_user.email.lower(),
            hashed_password=AuthHandler.hash_password(new_user.password),
            first_name=new_user.first_name,
            last_name=new_user.last_name,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email already exists",
            )

        await CreditLedgerService(self.session).get_or_create_balance(user.id)
        await NotificationService(self.session).notify_welcome(
            user.id, new_user.first_name
        )
        logger.info(f"New account created: {user.email}")

        return {"user": user.to_public_dict(), "token": self._issue_token(user)}

    async def login(self, credentials: LoginRequest) -> Dict:
        user = await self.get_user_by_email(credentials.email)
        if (
            not user
            or not user.is_active
            or not AuthHandler.verify_password(
                credentials.password, user.hashed_password
            )
        ):
            raise Unauthorized("Invalid email or password")

        user.last_login_at = datetime.now(timezone.utc)
        self.session.add(user)
        await self.session.commit()

        return {"user": user.to_public_dict(), "token": self._issue_token(user)}

    async def me(self, account: AuthenticatedAccount) -> Dict:
        user = await self.session.get(User, account.id)
        if not user or not user.is_active:
            raise Unauthorized("Account not found or disabled")

        balance = await CreditLedgerService(self.session).get_or_create_balance(
            user.id
        )
        return {**user.to_public_dict(), "credits": balance.to_dict()}
