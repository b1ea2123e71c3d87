import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.posts.service import ScheduledPostService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.database import db_session
from app.models import ContentStatus
from app.schemas import SaveDraftRequest, SchedulePostRequest

router = APIRouter()


@router.post("", name="Save draft")
async def save_draft(
    response: Response,
    request: SaveDraftRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledPostService(session)
        post = await service.save_draft(account, request)

        response.status_code = status.HTTP_201_CREATED
        return CommonResponse(
            message="Draft saved successfully", success=True, payload=post.to_dict()
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("", name="List posts")
async def list_posts(
    response: Response,
    post_status: Optional[ContentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledPostService(session)
        posts, meta = await service.list_posts(
            account, status_filter=post_status, page=page, page_size=page_size
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Posts fetched successfully", success=True, payload=posts, meta=meta
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/schedule", name="Schedule post")
async def schedule_post(
    response: Response,
    request: SchedulePostRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledPostService(session)
        post = await service.schedule_post(
            account, request.post_id, request.scheduled_at, request.caption
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Post scheduled successfully", success=True, payload=post.to_dict()
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/{post_id}/unschedule", name="Unschedule post")
async def unschedule_post(
    response: Response,
    post_id: uuid.UUID,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledPostService(session)
        post = await service.unschedule_post(account, post_id)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Post unscheduled successfully",
            success=True,
            payload=post.to_dict(),
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.delete("/{post_id}", name="Delete post")
async def delete_post(
    response: Response,
    post_id: uuid.UUID,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = ScheduledPostService(session)
        await service.delete_post(account, post_id)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Post deleted successfully", success=True, payload=None
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)
