import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.auth.auth_handler import AuthenticatedAccount
from app.common.exceptions import ResourceNotFound
from app.database import db_session
from app.logger.logger import logger
from app.models import Notification, NotificationType


def get_relative_time(created_at: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        # sqlite hands back naive values; everything is stored as UTC
        created_at = created_at.replace(tzinfo=timezone.utc)

    diff_secs = int((now - created_at).total_seconds())
    diff_mins = diff_secs // 60
    diff_hours = diff_mins // 60
    diff_days = diff_hours // 24
    diff_weeks = diff_days // 7
    diff_months = diff_days // 30

    if diff_secs < 60:
        return "Just now"
    if diff_mins < 60:
        return f"{diff_mins} min{'s' if diff_mins > 1 else ''} ago"
    if diff_hours < 24:
        return f"{diff_hours} hour{'s' if diff_hours > 1 else ''} ago"
    if diff_days == 1:
        return "Yesterday"
    if diff_days < 7:
        return f"{diff_days} days ago"
    if diff_weeks == 1:
        return "1 week ago"
    if diff_days < 30:
        return f"{diff_weeks} weeks ago"
    if diff_months == 1:
        return "1 month ago"
    if diff_months < 12:
        return f"{diff_months} months ago"

    if created_at.year != now.year:
        return created_at.strftime("%b %d, %Y")
    return created_at.strftime("%b %d")


class NotificationService:
    def __init__(self, session: AsyncSession = Depends(db_session)) -> None:
        self.session = session

    async def send_notification(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        link: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> bool:
        """
        Store a notification for a user.

        Notifications are best effort: a storage failure is logged and
        reported through the return value so the caller's own work is not
        undone by it.
        """
        try:
            self.session.add(
                Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                    link=link,
                    notification_metadata=metadata or {},
                )
            )
            await self.session.commit()
            return True
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to send notification to user {user_id}: {e}")
            return False

    async def notify_welcome(
        self, user_id: uuid.UUID, user_name: Optional[str] = None
    ) -> bool:
        message = (
            f"Hi {user_name}! Start creating amazing AI content today."
            if user_name
            else "Start creating amazing AI content today!"
        )
        return await self.send_notification(
            user_id,
            title="Welcome!",
            message=message,
            type=NotificationType.FEATURE,
            link="/dashboard",
        )

    async def create_notification(
        self,
        account: AuthenticatedAccount,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        link: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> Dict:
        notification = Notification(
            user_id=account.id,
            title=title,
            message=message,
            type=type,
            link=link,
            notification_metadata=metadata or {},
        )
        self.session.add(notification)
        await self.session.commit()
        return self._to_dict(notification)

    async def list_notifications(
        self, account: AuthenticatedAccount, limit: int = 20, unread_only: bool = False
    ) -> Dict:
        query = select(Notification).where(Notification.user_id == account.id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        result = await self.session.execute(query)
        notifications = result.scalars().all()

        unread_result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == account.id, Notification.is_read == False)
        )

        now = datetime.now(timezone.utc)
        return {
            "notifications": [self._to_dict(n, now) for n in notifications],
            "unread_count": unread_result.scalar_one(),
        }

    async def mark_read(
        self,
        account: AuthenticatedAccount,
        notification_id: Optional[uuid.UUID] = None,
        mark_all: bool = False,
    ) -> int:
        if mark_all:
            query = update(Notification).where(
                Notification.user_id == account.id, Notification.is_read == False
            )
        elif notification_id:
            query = update(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == account.id,
            )
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No notification specified",
            )

        result = await self.session.execute(
            query.values(is_read=True).execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if notification_id and not mark_all and result.rowcount == 0:
            raise ResourceNotFound("Notification not found")
        return result.rowcount

    def _to_dict(self, notification: Notification, now: Optional[datetime] = None) -> Dict:
        return {
            "id": str(notification.id),
            "title": notification.title,
            "message": notification.message,
            "type": notification.type,
            "read": notification.is_read,
            "link": notification.link,
            "metadata": notification.notification_metadata,
            "created_at": notification.created_at,
            "time": get_relative_time(notification.created_at, now),
        }
