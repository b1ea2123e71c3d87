from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.instagram.service import InstagramConnectionService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import ExternalServiceError, server_error_message
from app.common.http_response_model import CommonResponse
from app.config import settings
from app.database import db_session

router = APIRouter()


def _external_error_response(
    response: Response, err: ExternalServiceError
) -> CommonResponse:
    response.status_code = err.status_code
    details = None if settings.is_production else err.details
    return CommonResponse(
        success=False,
        message=f"{err.service.capitalize()} request failed: {err.message}",
        payload=details,
    )


@router.get("/auth-url", name="Instagram authorization url")
async def get_auth_url(
    response: Response,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    service = InstagramConnectionService(session)
    response.status_code = status.HTTP_200_OK
    return CommonResponse(
        message="Authorization url created",
        success=True,
        payload={"auth_url": service.get_auth_url(account)},
    )


@router.get("/callback", name="Instagram OAuth callback")
async def oauth_callback(
    response: Response,
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    if error or not code:
        response.status_code = status.HTTP_400_BAD_REQUEST
        return CommonResponse(
            success=False,
            message=error_description or error or "No authorization code received",
            payload=None,
        )

    try:
        service = InstagramConnectionService(session)
        result = await service.connect(account, code)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message=f"Connected to Instagram as @{result['username']}",
            success=True,
            payload=result,
        )

    except ExternalServiceError as ext_err:
        return _external_error_response(response, ext_err)

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("/status", name="Instagram connection status")
async def connection_status(
    response: Response,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = InstagramConnectionService(session)
        result = await service.status(account)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Instagram status fetched", success=True, payload=result
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/disconnect", name="Disconnect Instagram")
async def disconnect(
    response: Response,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = InstagramConnectionService(session)
        disconnected = await service.disconnect(account)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Instagram disconnected successfully",
            success=True,
            payload={"disconnected": disconnected},
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)
