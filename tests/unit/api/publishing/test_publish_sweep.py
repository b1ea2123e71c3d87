import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.api.publishing.service import PublishSweepService, SelectionPolicy, SweepKind
from app.instagram.graph_client import GraphAPIError, InstagramGraphClient
from app.models import (
    ContentStatus,
    Notification,
    NotificationType,
    PostMediaType,
    ScheduledPost,
    ScheduledStory,
    StoryMediaType,
)
from tests.factories import seed_connection, seed_post, seed_story


@pytest.fixture
def graph_client():
    client = AsyncMock(spec=InstagramGraphClient)
    client.publish_image.return_value = "ig-media-image"
    client.publish_video.return_value = "ig-media-video"
    client.publish_carousel.return_value = "ig-media-carousel"
    client.publish_story.return_value = "ig-media-story"
    return client


async def _sweep(session_factory, graph_client, **kwargs):
    async with session_factory() as session:
        service = PublishSweepService(session, graph_client=graph_client)
        return await service.run(**kwargs)


async def _get(session_factory, model, item_id):
    async with session_factory() as session:
        return await session.get(model, item_id)


async def _notifications(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(
            select(Notification).where(Notification.user_id == user_id)
        )
        return result.scalars().all()


@pytest.mark.asyncio
async def test_sweep_publishes_only_due_posts(session_factory, account, graph_client, now):
    await seed_connection(session_factory, account.id)
    due_ids = [
        await seed_post(session_factory, account.id, now - timedelta(minutes=m))
        for m in (30, 20, 10)
    ]
    future_id = await seed_post(session_factory, account.id, now + timedelta(hours=1))

    result = await _sweep(session_factory, graph_client, now=now)

    assert result.processed == 3
    assert result.published == 3
    assert result.failed == 0
    assert graph_client.publish_image.await_count == 3

    for post_id in due_ids:
        post = await _get(session_factory, ScheduledPost, post_id)
        assert post.status == ContentStatus.PUBLISHED
        assert post.external_media_id == "ig-media-image"
        assert post.posted_at is not None

    future = await _get(session_factory, ScheduledPost, future_id)
    assert future.status == ContentStatus.SCHEDULED
    assert future.external_media_id is None


@pytest.mark.asyncio
async def test_sweep_isolates_item_failures(session_factory, account, graph_client, now):
    await seed_connection(session_factory, account.id)
    failing_id = await seed_post(
        session_factory,
        account.id,
        now - timedelta(minutes=10),
        media_url="https://cdn.example.com/broken.jpg",
    )
    ok_id = await seed_post(session_factory, account.id, now - timedelta(minutes=5))

    async def publish_image(ig_user_id, access_token, image_url, caption):
        if "broken" in image_url:
            raise GraphAPIError("Invalid image format")
        return "ig-media-ok"

    graph_client.publish_image.side_effect = publish_image

    result = await _sweep(session_factory, graph_client, now=now)

    assert result.processed == 2
    assert result.published == 1
    assert result.failed == 1
    assert result.errors == [f"Post {failing_id}: Invalid image format"]
    assert result.to_dict() == {
        "processed": 2,
        "published": 1,
        "failed": 1,
        "errors": [f"Post {failing_id}: Invalid image format"],
    }

    failed = await _get(session_factory, ScheduledPost, failing_id)
    assert failed.status == ContentStatus.FAILED
    assert failed.error_message == "Invalid image format"

    published = await _get(session_factory, ScheduledPost, ok_id)
    assert published.status == ContentStatus.PUBLISHED
    assert published.external_media_id == "ig-media-ok"

    notifications = await _notifications(session_factory, account.id)
    types = sorted(n.type for n in notifications)
    assert types == sorted([NotificationType.ERROR, NotificationType.SUCCESS])


@pytest.mark.asyncio
async def test_claim_error_does_not_abort_the_batch(
    session_factory, account, graph_client, now, monkeypatch
):
    await seed_connection(session_factory, account.id)
    stuck_id = await seed_post(session_factory, account.id, now - timedelta(minutes=10))
    next_id = await seed_post(session_factory, account.id, now - timedelta(minutes=5))

    claim = PublishSweepService._claim

    async def claim_with_deadlock(self, model, item_id):
        if item_id == stuck_id:
            raise OperationalError("UPDATE scheduled_posts", {}, Exception("deadlock detected"))
        return await claim(self, model, item_id)

    monkeypatch.setattr(PublishSweepService, "_claim", claim_with_deadlock)

    result = await _sweep(session_factory, graph_client, now=now)

    assert result.processed == 1
    assert result.published == 1
    assert result.skipped == 1
    assert result.errors == [f"Post {stuck_id}: claim failed"]
    assert (await _get(session_factory, ScheduledPost, stuck_id)).status == ContentStatus.SCHEDULED
    assert (await _get(session_factory, ScheduledPost, next_id)).status == ContentStatus.PUBLISHED


@pytest.mark.asyncio
async def test_overlapping_sweeps_publish_each_post_once(
    session_factory, account, graph_client, past
):
    await seed_connection(session_factory, account.id)
    post_id = await seed_post(session_factory, account.id, past)

    async def slow_publish(*args, **kwargs):
        await asyncio.sleep(0.05)
        return "ig-media-once"

    graph_client.publish_image.side_effect = slow_publish

    first, second = await asyncio.gather(
        _sweep(session_factory, graph_client),
        _sweep(session_factory, graph_client),
    )

    assert first.published + second.published == 1
    assert graph_client.publish_image.await_count == 1
    post = await _get(session_factory, ScheduledPost, post_id)
    assert post.status == ContentStatus.PUBLISHED


@pytest.mark.asyncio
async def test_claimed_post_is_not_republished(session_factory, account, graph_client, past):
    await seed_connection(session_factory, account.id)
    await seed_post(session_factory, account.id, past, status=ContentStatus.PROCESSING)

    result = await _sweep(session_factory, graph_client)

    assert result.checked == 0
    graph_client.publish_image.assert_not_awaited()


@pytest.mark.asyncio
async def test_sweep_respects_limit_and_order(session_factory, account, graph_client, now):
    await seed_connection(session_factory, account.id)
    oldest = await seed_post(session_factory, account.id, now - timedelta(hours=2))
    newest = await seed_post(session_factory, account.id, now - timedelta(minutes=1))

    result = await _sweep(session_factory, graph_client, limit=1, now=now)

    assert result.processed == 1
    assert (await _get(session_factory, ScheduledPost, oldest)).status == ContentStatus.PUBLISHED
    assert (await _get(session_factory, ScheduledPost, newest)).status == ContentStatus.SCHEDULED


@pytest.mark.asyncio
async def test_cron_policy_skips_expired_connections(
    session_factory, account, graph_client, now, past
):
    await seed_connection(
        session_factory, account.id, token_expires_at=now - timedelta(days=1)
    )
    post_id = await seed_post(
        session_factory,
        account.id,
        past,
        thumbnail_url="https://cdn.example.com/thumb.jpg",
    )

    cron_result = await _sweep(session_factory, graph_client, now=now)
    assert cron_result.checked == 0
    assert (await _get(session_factory, ScheduledPost, post_id)).status == ContentStatus.SCHEDULED

    check_result = await _sweep(
        session_factory, graph_client, policy=SelectionPolicy.SCHEDULER_CHECK, now=now
    )
    assert check_result.published == 1
    graph_client.publish_image.assert_awaited_once_with(
        "ig-user-1", "ig-token", "https://cdn.example.com/thumb.jpg", "Morning vibes"
    )


@pytest.mark.asyncio
async def test_inactive_connection_is_never_selected(
    session_factory, account, graph_client, past
):
    await seed_connection(session_factory, account.id, is_active=False)
    await seed_post(session_factory, account.id, past)

    result = await _sweep(session_factory, graph_client)

    assert result.checked == 0
    assert result.to_dict()["processed"] == 0


@pytest.mark.asyncio
async def test_scheduler_check_ignores_posts_without_media(
    session_factory, account, graph_client, now
):
    await seed_connection(session_factory, account.id)
    no_media_id = await seed_post(
        session_factory, account.id, now - timedelta(minutes=30), media_url=None
    )
    ready_id = await seed_post(
        session_factory,
        account.id,
        now - timedelta(minutes=5),
        thumbnail_url="https://cdn.example.com/thumb.jpg",
    )

    result = await _sweep(
        session_factory,
        graph_client,
        policy=SelectionPolicy.SCHEDULER_CHECK,
        limit=1,
        now=now,
    )

    assert result.checked == 1
    assert result.published == 1
    assert result.results[0]["id"] == str(ready_id)
    graph_client.publish_image.assert_awaited_once()
    assert (await _get(session_factory, ScheduledPost, no_media_id)).status == ContentStatus.SCHEDULED
    assert (await _get(session_factory, ScheduledPost, ready_id)).status == ContentStatus.PUBLISHED


@pytest.mark.asyncio
async def test_scheduler_check_publishes_video_as_reel(
    session_factory, account, graph_client, past
):
    await seed_connection(session_factory, account.id)
    await seed_post(
        session_factory,
        account.id,
        past,
        media_type=PostMediaType.VIDEO,
        media_url="https://cdn.example.com/clip.mp4",
        caption=None,
    )

    result = await _sweep(
        session_factory, graph_client, policy=SelectionPolicy.SCHEDULER_CHECK
    )

    assert result.results[0]["success"] is True
    graph_client.publish_video.assert_awaited_once_with(
        "ig-user-1",
        "ig-token",
        "https://cdn.example.com/clip.mp4",
        "A sunrise over the sea",
        is_reel=True,
    )


@pytest.mark.asyncio
async def test_cron_policy_fails_post_without_media(
    session_factory, account, graph_client, past
):
    await seed_connection(session_factory, account.id)
    post_id = await seed_post(session_factory, account.id, past, media_url=None)

    result = await _sweep(session_factory, graph_client)

    assert result.failed == 1
    post = await _get(session_factory, ScheduledPost, post_id)
    assert post.status == ContentStatus.FAILED
    assert post.error_message == "Post media URL is missing"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "media_type, is_reel",
    [(PostMediaType.REEL, True), (PostMediaType.VIDEO, False)],
)
async def test_cron_policy_routes_video_types(
    session_factory, account, graph_client, past, media_type, is_reel
):
    await seed_connection(session_factory, account.id)
    await seed_post(
        session_factory,
        account.id,
        past,
        media_type=media_type,
        media_url="https://cdn.example.com/clip.mp4",
    )

    await _sweep(session_factory, graph_client)

    graph_client.publish_video.assert_awaited_once_with(
        "ig-user-1",
        "ig-token",
        "https://cdn.example.com/clip.mp4",
        "Morning vibes",
        is_reel=is_reel,
    )


@pytest.mark.asyncio
async def test_cron_policy_publishes_carousel(session_factory, account, graph_client, past):
    await seed_connection(session_factory, account.id)
    await seed_post(
        session_factory,
        account.id,
        past,
        media_type=PostMediaType.CAROUSEL,
        media_url=None,
        carousel_items=[
            {"url": "https://cdn.example.com/1.jpg", "type": "image"},
            {"url": "https://cdn.example.com/2.mp4", "type": "video"},
        ],
    )

    result = await _sweep(session_factory, graph_client)

    assert result.published == 1
    graph_client.publish_carousel.assert_awaited_once_with(
        "ig-user-1",
        "ig-token",
        [
            {"image_url": "https://cdn.example.com/1.jpg"},
            {"video_url": "https://cdn.example.com/2.mp4"},
        ],
        "Morning vibes",
    )


@pytest.mark.asyncio
async def test_story_sweep_publishes_due_stories(
    session_factory, account, graph_client, now
):
    await seed_connection(session_factory, account.id)
    story_id = await seed_story(
        session_factory,
        account.id,
        now - timedelta(minutes=1),
        media_type=StoryMediaType.VIDEO,
        url="https://cdn.example.com/story.mp4",
    )
    later_id = await seed_story(session_factory, account.id, now + timedelta(days=1))

    result = await _sweep(session_factory, graph_client, kind=SweepKind.STORIES, now=now)

    assert result.processed == 1
    graph_client.publish_story.assert_awaited_once_with(
        "ig-user-1", "ig-token", "https://cdn.example.com/story.mp4", is_video=True
    )
    story = await _get(session_factory, ScheduledStory, story_id)
    assert story.status == ContentStatus.PUBLISHED
    assert story.external_media_id == "ig-media-story"
    assert (await _get(session_factory, ScheduledStory, later_id)).status == ContentStatus.SCHEDULED

    notifications = await _notifications(session_factory, account.id)
    assert [n.title for n in notifications] == ["Story Published"]


@pytest.mark.asyncio
async def test_story_failure_is_recorded(session_factory, account, graph_client, past):
    await seed_connection(session_factory, account.id)
    story_id = await seed_story(session_factory, account.id, past)
    graph_client.publish_story.side_effect = GraphAPIError("Story video processing failed")

    result = await _sweep(session_factory, graph_client, kind=SweepKind.STORIES)

    assert result.errors == [f"Story {story_id}: Story video processing failed"]
    story = await _get(session_factory, ScheduledStory, story_id)
    assert story.status == ContentStatus.FAILED
    assert story.error_message == "Story video processing failed"


@pytest.mark.asyncio
async def test_story_sweep_only_supports_cron_policy(session_factory, graph_client):
    with pytest.raises(ValueError):
        await _sweep(
            session_factory,
            graph_client,
            kind=SweepKind.STORIES,
            policy=SelectionPolicy.SCHEDULER_CHECK,
        )
