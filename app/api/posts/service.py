import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.auth.auth_handler import AuthenticatedAccount
from app.common.exceptions import ResourceNotFound
from app.common.http_response_model import PageMeta
from app.database import db_session
from app.models import ContentStatus, ScheduledPost
from app.schemas import SaveDraftRequest

# posts in these states are owned by a running sweep or already live
LOCKED_STATUSES = (ContentStatus.PROCESSING, ContentStatus.PUBLISHED)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ScheduledPostService:
    def __init__(self, session: AsyncSession = Depends(db_session)) -> None:
        self.session = session

    async def _get_owned_post(
        self, account: AuthenticatedAccount, post_id: uuid.UUID
    ) -> ScheduledPost:
        result = await self.session.execute(
            select(ScheduledPost).where(
                ScheduledPost.id == post_id, ScheduledPost.user_id == account.id
            )
        )
        post = result.scalar_one_or_none()
        if not post:
            raise ResourceNotFound("Post not found or not authorized")
        return post

    async def save_draft(
        self, account: AuthenticatedAccount, draft: SaveDraftRequest
    ) -> ScheduledPost:
        post = ScheduledPost(
            user_id=account.id,
            original_prompt=draft.original_prompt,
            caption=draft.caption,
            media_type=draft.media_type,
            media_url=draft.media_url,
            thumbnail_url=draft.thumbnail_url,
            carousel_items=(
                [item.model_dump(mode="json") for item in draft.carousel_items]
                if draft.carousel_items
                else None
            ),
            settings=draft.settings or {},
            status=draft.status,
        )
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def list_posts(
        self,
        account: AuthenticatedAccount,
        status_filter: Optional[ContentStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict], PageMeta]:
        filters = [ScheduledPost.user_id == account.id]
        if status_filter:
            filters.append(ScheduledPost.status == status_filter)

        count_result = await self.session.execute(
            select(func.count()).select_from(ScheduledPost).where(*filters)
        )
        total_items = count_result.scalar_one()

        order = (
            ScheduledPost.scheduled_at.asc()
            if status_filter == ContentStatus.SCHEDULED
            else ScheduledPost.created_at.desc()
        )
        result = await self.session.execute(
            select(ScheduledPost)
            .where(*filters)
            .order_by(order)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        posts = [post.to_dict() for post in result.scalars().all()]

        meta = PageMeta.from_total(page, page_size, total_items)
        return posts, meta

    async def schedule_post(
        self,
        account: AuthenticatedAccount,
        post_id: uuid.UUID,
        scheduled_at: datetime,
        caption: Optional[str] = None,
    ) -> ScheduledPost:
        """Schedule a post, or re-schedule one whose publish attempt failed."""
        post = await self._get_owned_post(account, post_id)
        if post.status in LOCKED_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Post is {post.status.value} and cannot be scheduled",
            )

        post.scheduled_at = as_utc(scheduled_at)
        post.status = ContentStatus.SCHEDULED
        post.error_message = None
        if caption is not None:
            post.caption = caption

        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def unschedule_post(
        self, account: AuthenticatedAccount, post_id: uuid.UUID
    ) -> ScheduledPost:
        post = await self._get_owned_post(account, post_id)
        if post.status != ContentStatus.SCHEDULED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only scheduled posts can be unscheduled",
            )

        post.status = ContentStatus.READY
        post.scheduled_at = None
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def delete_post(self, account: AuthenticatedAccount, post_id: uuid.UUID) -> None:
        post = await self._get_owned_post(account, post_id)
        if post.status == ContentStatus.PROCESSING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Post is being published and cannot be deleted",
            )
        await self.session.delete(post)
        await self.session.commit()
