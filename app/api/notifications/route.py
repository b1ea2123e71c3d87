from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.notifications.service import NotificationService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.database import db_session
from app.schemas import CreateNotificationRequest, MarkNotificationsReadRequest

router = APIRouter()


@router.get("", name="List notifications")
async def list_notifications(
    response: Response,
    limit: int = Query(20, ge=1, le=100),
    unread: bool = False,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = NotificationService(session)
        result = await service.list_notifications(
            account, limit=limit, unread_only=unread
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Notifications fetched successfully", success=True, payload=result
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("", name="Create notification")
async def create_notification(
    response: Response,
    request: CreateNotificationRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = NotificationService(session)
        notification = await service.create_notification(
            account,
            title=request.title,
            message=request.message,
            type=request.type,
            link=request.link,
            metadata=request.metadata,
        )

        response.status_code = status.HTTP_201_CREATED
        return CommonResponse(
            message="Notification created", success=True, payload=notification
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/read", name="Mark notifications as read")
async def mark_notifications_read(
    response: Response,
    request: MarkNotificationsReadRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = NotificationService(session)
        updated = await service.mark_read(
            account, notification_id=request.notification_id, mark_all=request.mark_all
        )

        response.status_code = status.HTTP_200_OK
        message = (
            "All notifications marked as read"
            if request.mark_all
            else "Notification marked as read"
        )
        return CommonResponse(message=message, success=True, payload={"updated": updated})

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)
