from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.auth.auth_handler import AuthenticatedAccount
from app.database import db_session
from app.instagram.graph_client import InstagramGraphClient
from app.logger.logger import logger
from app.models import Platform, PlatformConnection

NO_BUSINESS_ACCOUNT_MESSAGE = (
    "No Instagram Business account found. Link your Instagram account to a "
    "Facebook Page and accept all requested permissions, then try again."
)


class InstagramConnectionService:
    def __init__(
        self,
        session: AsyncSession = Depends(db_session),
        graph_client: Optional[InstagramGraphClient] = None,
    ) -> None:
        self.session = session
        self.graph_client = graph_client or InstagramGraphClient()

    async def _get_connection(
        self, account: AuthenticatedAccount
    ) -> Optional[PlatformConnection]:
        result = await self.session.execute(
            select(PlatformConnection).where(
                PlatformConnection.user_id == account.id,
                PlatformConnection.platform == Platform.INSTAGRAM,
            )
        )
        return result.scalar_one_or_none()

    def get_auth_url(self, account: AuthenticatedAccount) -> str:
        return self.graph_client.get_auth_url(state=str(account.id))

    async def connect(self, account: AuthenticatedAccount, code: str) -> Dict:
        """
        Finish the OAuth flow and store the account's Instagram connection.

        A previous connection is replaced wholesale, never merged.
        """
        token_data = await self.graph_client.exchange_code_for_token(code)
        long_lived = await self.graph_client.get_long_lived_token(
            token_data["access_token"]
        )
        access_token = long_lived["access_token"]

        ig_user_id = await self.graph_client.get_business_account(access_token)
        if not ig_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=NO_BUSINESS_ACCOUNT_MESSAGE,
            )

        profile = await self.graph_client.get_profile(ig_user_id, access_token)

        expires_in = long_lived.get("expires_in")
        token_expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            if expires_in
            else None
        )

        connection = await self._get_connection(account)
        if connection is None:
            connection = PlatformConnection(
                user_id=account.id, platform=Platform.INSTAGRAM
            )

        connection.access_token = access_token
        connection.platform_user_id = ig_user_id
        connection.username = profile.get("username")
        connection.token_expires_at = token_expires_at
        connection.is_active = True

        self.session.add(connection)
        await self.session.commit()
        logger.info(f"User {account.id} connected Instagram @{connection.username}")

        return {
            "connected": True,
            "username": connection.username,
            "user_id": ig_user_id,
            "token_expires_at": token_expires_at,
        }

    async def status(self, account: AuthenticatedAccount) -> Dict:
        connection = await self._get_connection(account)
        if not connection or not connection.is_active or not connection.access_token:
            return {"connected": False, "username": None}

        return {
            "connected": True,
            "username": connection.username,
            "user_id": connection.platform_user_id,
            "token_expires_at": connection.token_expires_at,
        }

    async def disconnect(self, account: AuthenticatedAccount) -> bool:
        connection = await self._get_connection(account)
        if not connection:
            return False

        connection.is_active = False
        connection.access_token = None
        self.session.add(connection)
        await self.session.commit()
        logger.info(f"User {account.id} disconnected Instagram")
        return True
