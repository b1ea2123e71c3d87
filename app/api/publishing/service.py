import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from fastapi import Depends
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.notifications.service import NotificationService
from app.config import settings
from app.database import db_session
from app.instagram.graph_client import InstagramGraphClient
from app.logger.logger import get_logger
from app.models import (
    ContentStatus,
    NotificationType,
    Platform,
    PlatformConnection,
    PostMediaType,
    ScheduledPost,
    ScheduledStory,
    StoryMediaType,
)


logger = get_logger("publishing")


class SweepKind(str, Enum):
    POSTS = "posts"
    STORIES = "stories"


class SelectionPolicy(str, Enum):
    # Connection must be active and unexpired; items without media fail.
    CRON = "cron"
    # Connection must be active; posts without usable media are not selected.
    SCHEDULER_CHECK = "scheduler_check"


@dataclass
class DueItem:
    item: Union[ScheduledPost, ScheduledStory]
    access_token: str
    ig_user_id: str


@dataclass
class SweepResult:
    kind: SweepKind
    policy: SelectionPolicy
    checked: int = 0
    processed: int = 0
    published: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    results: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        if self.policy == SelectionPolicy.SCHEDULER_CHECK:
            return {
                "checked": self.checked,
                "published": self.published,
                "failed": self.failed,
                "results": self.results,
            }
        return {
            "processed": self.processed,
            "published": self.published,
            "failed": self.failed,
            "errors": self.errors,
        }


class PublishSweepService:
    """
    Publishes scheduled content whose time has come.

    Each invocation is stateless: it selects due items, claims every item
    with a conditional status flip to ``processing`` and only publishes the
    items it managed to claim. Overlapping sweeps therefore never publish
    the same item twice. Every item's outcome is committed on its own, so a
    failing item never affects the rest of the batch.
    """

    def __init__(
        self,
        session: AsyncSession = Depends(db_session),
        graph_client: Optional[InstagramGraphClient] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> None:
        self.session = session
        self.graph_client = graph_client or InstagramGraphClient()
        self.notification_service = notification_service or NotificationService(
            session
        )

    async def run(
        self,
        kind: SweepKind = SweepKind.POSTS,
        policy: SelectionPolicy = SelectionPolicy.CRON,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        if kind == SweepKind.STORIES and policy != SelectionPolicy.CRON:
            raise ValueError("Stories are only swept with the cron policy")

        now = now or datetime.now(timezone.utc)
        limit = limit or settings.SWEEP_BATCH_LIMIT
        model = ScheduledPost if kind == SweepKind.POSTS else ScheduledStory
        result = SweepResult(kind=kind, policy=policy)

        due_items = await self._select_due(model, policy, limit, now)
        result.checked = len(due_items)
        logger.info(f"Found {len(due_items)} {kind.value} due for publishing")

        label = "Post" if kind == SweepKind.POSTS else "Story"
        for due in due_items:
            item = due.item
            try:
                claimed = await self._claim(model, item.id)
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Could not claim {model.__name__} {item.id}: {e}")
                result.skipped += 1
                result.errors.append(f"{label} {item.id}: claim failed")
                continue

            if not claimed:
                logger.info(f"{model.__name__} {item.id} already claimed, skipping")
                result.skipped += 1
                continue

            result.processed += 1
            try:
                logger.info(f"Publishing {label.lower()} {item.id} for user {item.user_id}")
                if kind == SweepKind.POSTS:
                    media_id = await self._publish_post(due, policy)
                else:
                    media_id = await self._publish_story(due)
            except Exception as e:
                error_message = str(e) or e.__class__.__name__
                logger.error(f"Failed to publish {label.lower()} {item.id}: {error_message}")
                result.failed += 1
                result.errors.append(f"{label} {item.id}: {error_message}")
                result.results.append(
                    {"id": str(item.id), "success": False, "error": error_message}
                )
                await self._mark_failed(model, item.id, error_message)
                await self.notification_service.send_notification(
                    item.user_id,
                    title=f"{label} Publishing Failed",
                    message=f"Failed to publish your scheduled {label.lower()}: {error_message}",
                    type=NotificationType.ERROR,
                    metadata={f"{label.lower()}_id": str(item.id), "error": error_message},
                )
                continue

            logger.info(f"{label} {item.id} published successfully (media ID: {media_id})")
            result.published += 1
            result.results.append(
                {"id": str(item.id), "success": True, "media_id": media_id}
            )
            await self._mark_published(model, item.id, media_id)
            await self.notification_service.send_notification(
                item.user_id,
                title=f"{label} Published",
                message=f"Your scheduled {label.lower()} has been published to Instagram!",
                type=NotificationType.SUCCESS,
                metadata={f"{label.lower()}_id": str(item.id), "media_id": media_id},
            )

        logger.info(
            f"Publishing complete: {result.published} published, "
            f"{result.failed} failed, {result.skipped} skipped"
        )
        return result

    async def _select_due(
        self,
        model,
        policy: SelectionPolicy,
        limit: int,
        now: datetime,
    ) -> List[DueItem]:
        conditions = [
            model.status == ContentStatus.SCHEDULED,
            model.scheduled_at <= now,
            PlatformConnection.access_token.is_not(None),
            PlatformConnection.platform_user_id.is_not(None),
            PlatformConnection.is_active == True,
        ]
        if policy == SelectionPolicy.CRON:
            conditions.append(
                or_(
                    PlatformConnection.token_expires_at.is_(None),
                    PlatformConnection.token_expires_at > now,
                )
            )
        else:
            # posts without usable media would hold the front of the queue forever
            conditions.append(
                or_(
                    and_(
                        model.media_url.is_not(None),
                        model.media_url != "",
                        model.media_type.in_([PostMediaType.VIDEO, PostMediaType.REEL]),
                    ),
                    and_(model.thumbnail_url.is_not(None), model.thumbnail_url != ""),
                )
            )

        query = (
            select(
                model,
                PlatformConnection.access_token,
                PlatformConnection.platform_user_id,
            )
            .join(
                PlatformConnection,
                and_(
                    PlatformConnection.user_id == model.user_id,
                    PlatformConnection.platform == Platform.INSTAGRAM,
                ),
            )
            .where(*conditions)
            .order_by(model.scheduled_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        rows = result.all()
        # release the read transaction before any slow external call
        await self.session.commit()

        return [
            DueItem(item=item, access_token=token, ig_user_id=ig_user_id)
            for item, token, ig_user_id in rows
        ]

    async def _claim(self, model, item_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            update(model)
            .where(model.id == item_id, model.status == ContentStatus.SCHEDULED)
            .values(
                status=ContentStatus.PROCESSING,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def _record(self, model, item_id: uuid.UUID, values: Dict) -> None:
        try:
            await self.session.execute(
                update(model)
                .where(model.id == item_id, model.status == ContentStatus.PROCESSING)
                .values(updated_at=datetime.now(timezone.utc), **values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Could not record outcome for {model.__name__} {item_id}; "
                f"it stays in processing: {e}"
            )

    async def _mark_published(self, model, item_id: uuid.UUID, media_id: str) -> None:
        await self._record(
            model,
            item_id,
            {
                "status": ContentStatus.PUBLISHED,
                "posted_at": datetime.now(timezone.utc),
                "external_media_id": media_id,
                "error_message": None,
            },
        )

    async def _mark_failed(self, model, item_id: uuid.UUID, error_message: str) -> None:
        await self._record(
            model,
            item_id,
            {"status": ContentStatus.FAILED, "error_message": error_message},
        )

    def _scheduler_media(self, post: ScheduledPost) -> Optional[Tuple[str, bool]]:
        """Media for the scheduler-check policy: (url, is_video) or None."""
        if post.media_url and post.media_type in (PostMediaType.VIDEO, PostMediaType.REEL):
            return post.media_url, True
        if post.thumbnail_url:
            return post.thumbnail_url, False
        return None

    async def _publish_post(self, due: DueItem, policy: SelectionPolicy) -> str:
        post: ScheduledPost = due.item

        if policy == SelectionPolicy.SCHEDULER_CHECK:
            media_url, is_video = self._scheduler_media(post)
            caption = post.caption or post.original_prompt or ""
            if is_video:
                return await self.graph_client.publish_video(
                    due.ig_user_id, due.access_token, media_url, caption, is_reel=True
                )
            return await self.graph_client.publish_image(
                due.ig_user_id, due.access_token, media_url, caption
            )

        media_type = post.media_type or PostMediaType.IMAGE
        caption = post.caption or ""

        if media_type == PostMediaType.CAROUSEL and post.carousel_items:
            items = [
                {"video_url": entry["url"]}
                if entry.get("type") == StoryMediaType.VIDEO.value
                else {"image_url": entry["url"]}
                for entry in post.carousel_items
            ]
            return await self.graph_client.publish_carousel(
                due.ig_user_id, due.access_token, items, caption
            )

        if not post.media_url:
            raise ValueError("Post media URL is missing")

        if media_type in (PostMediaType.VIDEO, PostMediaType.REEL):
            return await self.graph_client.publish_video(
                due.ig_user_id,
                due.access_token,
                post.media_url,
                caption,
                is_reel=media_type == PostMediaType.REEL,
            )

        return await self.graph_client.publish_image(
            due.ig_user_id, due.access_token, post.media_url, caption
        )

    async def _publish_story(self, due: DueItem) -> str:
        story: ScheduledStory = due.item
        if not story.url:
            raise ValueError("Story URL is missing")

        return await self.graph_client.publish_story(
            due.ig_user_id,
            due.access_token,
            story.url,
            is_video=story.media_type == StoryMediaType.VIDEO,
        )
