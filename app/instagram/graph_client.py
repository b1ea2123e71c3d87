import asyncio
import uuid
from typing import Dict, List, Optional
from urllib.parse import urlencode

import httpx

from app.common.exceptions import ExternalServiceError
from app.config import settings
from app.logger.logger import get_logger

logger = get_logger("instagram")

OAUTH_SCOPES = [
    "instagram_basic",
    "instagram_content_publish",
    "instagram_manage_comments",
    "instagram_manage_insights",
    "pages_show_list",
    "pages_read_engagement",
    "pages_manage_metadata",
    "business_management",
]

PROFILE_FIELDS = (
    "id,username,name,account_type,profile_picture_url,"
    "followers_count,follows_count,media_count"
)


class GraphAPIError(ExternalServiceError):
    def __init__(self, message: str, details: Optional[Dict] = None) -> None:
        super().__init__("instagram", message, details)


class InstagramGraphClient:
    """
    Thin async wrapper over the Instagram Graph API content publishing flow.

    Publishing is always two-step: create a media container, then publish it.
    Video containers are processed asynchronously by Instagram, so their
    status is polled until it reports FINISHED before publishing.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        api_version: Optional[str] = None,
        poll_interval: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        mock: Optional[bool] = None,
    ) -> None:
        self.api_version = api_version or settings.GRAPH_API_VERSION
        self.base_url = f"https://graph.facebook.com/{self.api_version}"
        self.http_client = http_client
        self.poll_interval = (
            settings.MEDIA_POLL_INTERVAL_SECONDS
            if poll_interval is None
            else poll_interval
        )
        self.max_poll_attempts = max_poll_attempts or settings.MEDIA_POLL_MAX_ATTEMPTS
        self.mock = settings.INSTAGRAM_MOCK_PUBLISH if mock is None else mock

    async def _send(self, client: httpx.AsyncClient, method: str, url: str, **kwargs):
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Instagram API request failed: {e}")

    async def _request(
        self, method: str, path: str, fallback_error: str, **kwargs
    ) -> Dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if self.http_client is not None:
            response = await self._send(self.http_client, method, url, **kwargs)
        else:
            async with httpx.AsyncClient(
                timeout=settings.GRAPH_HTTP_TIMEOUT_SECONDS
            ) as client:
                response = await self._send(client, method, url, **kwargs)

        if response.is_success:
            return response.json()

        try:
            error_body = response.json()
        except ValueError:
            error_body = {}
        message = (error_body.get("error") or {}).get("message") or fallback_error
        logger.error(f"Instagram API error ({response.status_code}) on {path}: {message}")
        raise GraphAPIError(
            message, details={"status_code": response.status_code, "body": error_body}
        )

    # ---- OAuth ----

    def get_auth_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": settings.INSTAGRAM_APP_ID,
            "redirect_uri": settings.INSTAGRAM_REDIRECT_URI,
            "scope": ",".join(OAUTH_SCOPES),
            "response_type": "code",
        }
        if state:
            params["state"] = state
        return f"https://www.facebook.com/{self.api_version}/dialog/oauth?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> Dict:
        return await self._request(
            "GET",
            "oauth/access_token",
            "Failed to exchange code for token",
            params={
                "client_id": settings.INSTAGRAM_APP_ID,
                "client_secret": settings.INSTAGRAM_APP_SECRET,
                "redirect_uri": settings.INSTAGRAM_REDIRECT_URI,
                "code": code,
            },
        )

    async def get_long_lived_token(self, short_lived_token: str) -> Dict:
        return await self._request(
            "GET",
            "oauth/access_token",
            "Failed to get long-lived token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": settings.INSTAGRAM_APP_ID,
                "client_secret": settings.INSTAGRAM_APP_SECRET,
                "fb_exchange_token": short_lived_token,
            },
        )

    async def get_business_account(self, access_token: str) -> Optional[str]:
        """Return the first Instagram business account linked to the user's pages."""
        pages = await self._request(
            "GET",
            "me/accounts",
            "Failed to fetch Facebook pages",
            params={"access_token": access_token},
        )

        for page in pages.get("data") or []:
            try:
                page_data = await self._request(
                    "GET",
                    page["id"],
                    "Failed to fetch Instagram account for page",
                    params={
                        "fields": "instagram_business_account",
                        "access_token": page.get("access_token", access_token),
                    },
                )
            except GraphAPIError as e:
                logger.warning(f"Skipping page {page.get('id')}: {e}")
                continue

            business_account = page_data.get("instagram_business_account") or {}
            if business_account.get("id"):
                return business_account["id"]

        return None

    async def get_profile(self, ig_user_id: str, access_token: str) -> Dict:
        return await self._request(
            "GET",
            ig_user_id,
            "Failed to fetch profile",
            params={"fields": PROFILE_FIELDS, "access_token": access_token},
        )

    # ---- Publishing ----

    async def create_media_container(
        self,
        ig_user_id: str,
        access_token: str,
        image_url: Optional[str] = None,
        video_url: Optional[str] = None,
        caption: Optional[str] = None,
        media_type: Optional[str] = None,
        share_to_feed: Optional[bool] = None,
        is_carousel_item: bool = False,
        children: Optional[List[str]] = None,
        error_message: str = "Failed to create media container",
    ) -> str:
        data = {"access_token": access_token}
        if caption:
            data["caption"] = caption
        if image_url:
            data["image_url"] = image_url
        if video_url:
            data["video_url"] = video_url
        if media_type:
            data["media_type"] = media_type
        if share_to_feed is not None:
            data["share_to_feed"] = "true" if share_to_feed else "false"
        if is_carousel_item:
            data["is_carousel_item"] = "true"
        if children:
            data["children"] = ",".join(children)

        result = await self._request("POST", f"{ig_user_id}/media", error_message, data=data)
        return result["id"]

    async def check_media_status(self, container_id: str, access_token: str) -> Dict:
        return await self._request(
            "GET",
            container_id,
            "Failed to check media status",
            params={"fields": "status,status_code", "access_token": access_token},
        )

    async def wait_for_container(
        self, container_id: str, access_token: str, label: str = "Video"
    ) -> None:
        status = await self.check_media_status(container_id, access_token)
        attempts = 0

        while status.get("status_code") != "FINISHED" and attempts < self.max_poll_attempts:
            if status.get("status_code") == "ERROR":
                raise GraphAPIError(
                    f"{label} processing failed",
                    details={"status": status.get("status")},
                )
            await asyncio.sleep(self.poll_interval)
            status = await self.check_media_status(container_id, access_token)
            attempts += 1

        if status.get("status_code") == "ERROR":
            raise GraphAPIError(f"{label} processing failed")
        if status.get("status_code") != "FINISHED":
            raise GraphAPIError(f"{label} processing timed out")

    async def publish_media(
        self, ig_user_id: str, container_id: str, access_token: str
    ) -> str:
        result = await self._request(
            "POST",
            f"{ig_user_id}/media_publish",
            "Failed to publish media",
            data={"creation_id": container_id, "access_token": access_token},
        )
        return result["id"]

    def _mock_media_id(self, kind: str) -> str:
        media_id = f"mock_{kind}_{uuid.uuid4().hex[:12]}"
        logger.info(f"Mock publish of {kind}: {media_id}")
        return media_id

    async def publish_image(
        self,
        ig_user_id: str,
        access_token: str,
        image_url: str,
        caption: Optional[str] = None,
    ) -> str:
        if self.mock:
            return self._mock_media_id("image")

        container_id = await self.create_media_container(
            ig_user_id, access_token, image_url=image_url, caption=caption
        )
        return await self.publish_media(ig_user_id, container_id, access_token)

    async def publish_video(
        self,
        ig_user_id: str,
        access_token: str,
        video_url: str,
        caption: Optional[str] = None,
        is_reel: bool = True,
    ) -> str:
        if self.mock:
            return self._mock_media_id("reel" if is_reel else "video")

        container_id = await self.create_media_container(
            ig_user_id,
            access_token,
            video_url=video_url,
            caption=caption,
            media_type="REELS" if is_reel else "VIDEO",
            share_to_feed=True,
        )
        await self.wait_for_container(container_id, access_token, label="Video")
        return await self.publish_media(ig_user_id, container_id, access_token)

    async def publish_carousel(
        self,
        ig_user_id: str,
        access_token: str,
        items: List[Dict],
        caption: Optional[str] = None,
    ) -> str:
        """
        Publish a carousel album.

        Args:
            items: Dicts with either ``image_url`` or ``video_url``
        """
        if not items:
            raise GraphAPIError("Carousel requires at least one item")
        if self.mock:
            return self._mock_media_id("carousel")

        child_ids = []
        for item in items:
            if item.get("image_url"):
                child_id = await self.create_media_container(
                    ig_user_id,
                    access_token,
                    image_url=item["image_url"],
                    is_carousel_item=True,
                    error_message="Failed to create carousel item",
                )
            else:
                child_id = await self.create_media_container(
                    ig_user_id,
                    access_token,
                    video_url=item.get("video_url"),
                    media_type="VIDEO",
                    is_carousel_item=True,
                    error_message="Failed to create carousel item",
                )
            child_ids.append(child_id)

        carousel_id = await self.create_media_container(
            ig_user_id,
            access_token,
            caption=caption,
            media_type="CAROUSEL",
            children=child_ids,
            error_message="Failed to create carousel",
        )
        return await self.publish_media(ig_user_id, carousel_id, access_token)

    async def publish_story(
        self,
        ig_user_id: str,
        access_token: str,
        media_url: str,
        is_video: bool = False,
    ) -> str:
        if self.mock:
            return self._mock_media_id("story")

        if is_video:
            container_id = await self.create_media_container(
                ig_user_id,
                access_token,
                video_url=media_url,
                media_type="STORIES",
                error_message="Failed to create story",
            )
            await self.wait_for_container(container_id, access_token, label="Story video")
        else:
            container_id = await self.create_media_container(
                ig_user_id,
                access_token,
                image_url=media_url,
                media_type="STORIES",
                error_message="Failed to create story",
            )
        return await self.publish_media(ig_user_id, container_id, access_token)
