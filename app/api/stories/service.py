import uuid
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.posts.service import LOCKED_STATUSES, as_utc
from app.auth.auth_handler import AuthenticatedAccount
from app.common.exceptions import ResourceNotFound
from app.database import db_session
from app.models import ContentStatus, ScheduledStory
from app.schemas import CreateStoryRequest, UpdateStoryRequest


class ScheduledStoryService:
    def __init__(self, session: AsyncSession = Depends(db_session)) -> None:
        self.session = session

    async def get_story(
        self, account: AuthenticatedAccount, story_id: uuid.UUID
    ) -> ScheduledStory:
        result = await self.session.execute(
            select(ScheduledStory).where(
                ScheduledStory.id == story_id, ScheduledStory.user_id == account.id
            )
        )
        story = result.scalar_one_or_none()
        if not story:
            raise ResourceNotFound("Story not found")
        return story

    async def create_story(
        self, account: AuthenticatedAccount, request: CreateStoryRequest
    ) -> ScheduledStory:
        if not request.type or not request.url or not request.scheduled_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: type, url and scheduled_time",
            )

        story = ScheduledStory(
            user_id=account.id,
            media_type=request.type,
            url=request.url,
            thumbnail=request.thumbnail,
            caption=request.caption,
            duration=request.duration,
            stickers=request.stickers,
            status=ContentStatus.SCHEDULED,
            scheduled_at=as_utc(request.scheduled_time),
        )
        self.session.add(story)
        await self.session.commit()
        await self.session.refresh(story)
        return story

    async def list_stories(
        self,
        account: AuthenticatedAccount,
        status_filter: Optional[ContentStatus] = None,
    ) -> List[Dict]:
        query = select(ScheduledStory).where(ScheduledStory.user_id == account.id)
        if status_filter:
            query = query.where(ScheduledStory.status == status_filter)

        result = await self.session.execute(
            query.order_by(ScheduledStory.scheduled_at.asc())
        )
        return [story.to_dict() for story in result.scalars().all()]

    async def update_story(
        self,
        account: AuthenticatedAccount,
        story_id: uuid.UUID,
        request: UpdateStoryRequest,
    ) -> ScheduledStory:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update"
            )

        story = await self.get_story(account, story_id)
        if story.status in LOCKED_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Story is {story.status.value} and cannot be changed",
            )

        if "url" in changes:
            story.url = changes["url"]
        if "caption" in changes:
            story.caption = changes["caption"]
        if "stickers" in changes:
            story.stickers = changes["stickers"]
        if "duration" in changes:
            story.duration = changes["duration"]
        if "scheduled_time" in changes:
            # a new time puts failed stories back in the queue
            story.scheduled_at = as_utc(request.scheduled_time)
            story.status = ContentStatus.SCHEDULED
            story.error_message = None

        self.session.add(story)
        await self.session.commit()
        await self.session.refresh(story)
        return story

    async def delete_story(
        self, account: AuthenticatedAccount, story_id: uuid.UUID
    ) -> None:
        story = await self.get_story(account, story_id)
        if story.status == ContentStatus.PROCESSING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Story is being published and cannot be deleted",
            )
        await self.session.delete(story)
        await self.session.commit()
