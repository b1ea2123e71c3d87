import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.stories.service import ScheduledStoryService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.database import db_session
from app.models import ContentStatus
from app.schemas import CreateStoryRequest, UpdateStoryRequest

router = APIRouter()


@router.post("", name="Create story")
async def create_story(
    response: Response,
    request: CreateStoryRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledStoryService(session)
        story = await service.create_story(account, request)

        response.status_code = status.HTTP_201_CREATED
        return CommonResponse(
            message="Story scheduled successfully", success=True, payload=story.to_dict()
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("", name="List stories")
async def list_stories(
    response: Response,
    story_status: Optional[ContentStatus] = Query(None, alias="status"),
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledStoryService(session)
        stories = await service.list_stories(account, status_filter=story_status)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Stories fetched successfully", success=True, payload=stories
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("/{story_id}", name="Get story")
async def get_story(
    response: Response,
    story_id: uuid.UUID,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledStoryService(session)
        story = await service.get_story(account, story_id)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Story fetched successfully", success=True, payload=story.to_dict()
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.patch("/{story_id}", name="Update story")
async def update_story(
    response: Response,
    story_id: uuid.UUID,
    request: UpdateStoryRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledStoryService(session)
        story = await service.update_story(account, story_id, request)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Story updated successfully", success=True, payload=story.to_dict()
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.delete("/{story_id}", name="Delete story")
async def delete_story(
    response: Response,
    story_id: uuid.UUID,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledStoryService(session)
        await service.delete_story(account, story_id)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Story deleted successfully", success=True, payload=None
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)
