from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.auth.service import AuthService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.config import settings
from app.database import db_session
from app.schemas import LoginRequest, SignupRequest

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.post("/signup", name="Create account")
async def signup(
    response: Response,
    request: SignupRequest,
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = AuthService(session)
        result = await service.signup(request)
        _set_session_cookie(response, result["token"])

        response.status_code = status.HTTP_201_CREATED
        return CommonResponse(
            message="Account created successfully", success=True, payload=result
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/login", name="Login")
async def login(
    response: Response,
    request: LoginRequest,
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = AuthService(session)
        result = await service.login(request)
        _set_session_cookie(response, result["token"])

        response.status_code = status.HTTP_200_OK
        return CommonResponse(message="Login successful", success=True, payload=result)

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("/me", name="Current account")
async def me(
    response: Response,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = AuthService(session)
        result = await service.me(account)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Account fetched successfully", success=True, payload=result
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/logout", name="Logout")
async def logout(response: Response) -> CommonResponse:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")
    response.status_code = status.HTTP_200_OK
    return CommonResponse(message="Logged out successfully", success=True, payload=None)
