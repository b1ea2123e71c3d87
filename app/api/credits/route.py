from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.credits.service import CreditLedgerService
from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.generation_costs import GenerationCostManager
from app.common.http_response_model import CommonResponse
from app.database import db_session
from app.schemas import (
    AddCreditsRequest,
    ChargeGenerationRequest,
    DeductAICreditsRequest,
    DeductCreditsRequest,
    RefundCreditsRequest,
)

router = APIRouter()


def _error_response(response: Response, http_err: HTTPException) -> CommonResponse:
    response.status_code = http_err.status_code
    payload = None
    if hasattr(http_err, "remaining"):
        payload = {"remaining": http_err.remaining, "required": http_err.required}
    return CommonResponse(success=False, message=str(http_err.detail), payload=payload)


@router.get("/balance", name="Get credit balance")
async def get_balance(
    response: Response,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        balance = await service.get_or_create_balance(account.id)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Credit balance fetched successfully",
            success=True,
            payload=balance.to_dict(),
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("/history", name="Get credit history")
async def get_history(
    response: Response,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action_type: Optional[str] = None,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        history, meta = await service.get_history(
            account.id, page=page, page_size=page_size, action_type=action_type
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Credit history fetched successfully",
            success=True,
            payload=history,
            meta=meta,
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/deduct", name="Deduct credits")
async def deduct_credits(
    response: Response,
    request: DeductCreditsRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        balance = await service.deduct(
            account.id,
            request.amount,
            action_type=request.action_type,
            model_used=request.model_used,
            duration=request.duration,
            description=request.description,
            metadata=request.metadata,
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Credits deducted successfully",
            success=True,
            payload={
                "remaining_credits": balance.remaining_credits,
                "credits_used": request.amount,
            },
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/deduct-ai", name="Deduct AI credits")
async def deduct_ai_credits(
    response: Response,
    request: DeductAICreditsRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        balance = await service.deduct_bonus(
            account.id,
            request.amount,
            action_type=request.action_type,
            description=request.description,
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="AI credits deducted successfully",
            success=True,
            payload={
                "bonus_credits": balance.bonus_credits,
                "credits_used": request.amount,
            },
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/add", name="Add credits")
async def add_credits(
    response: Response,
    request: AddCreditsRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        balance = await service.add(account.id, request.amount, request.description)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Credits added successfully",
            success=True,
            payload={
                "total_credits": balance.total_credits,
                "remaining_credits": balance.remaining_credits,
                "added": request.amount,
            },
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/refund", name="Refund credits")
async def refund_credits(
    response: Response,
    request: RefundCreditsRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        balance = await service.refund(account.id, request.amount, request.reason)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Credits refunded successfully",
            success=True,
            payload=balance.to_dict(),
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.post("/charge", name="Charge a generation action")
async def charge_generation(
    response: Response,
    request: ChargeGenerationRequest,
    account: AuthenticatedAccount = Depends(AuthHandler()),
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    try:
        service = CreditLedgerService(session)
        result = await service.charge_for_generation(
            account.id,
            request.action,
            quality=request.quality,
            clips=request.clips,
            duration=request.duration,
            credits_per_second=request.credits_per_second,
        )

        response.status_code = status.HTTP_200_OK
        return CommonResponse(
            message="Generation charged successfully", success=True, payload=result
        )

    except HTTPException as http_err:
        return _error_response(response, http_err)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.get("/costs", name="List generation costs")
async def get_costs(response: Response) -> CommonResponse:
    response.status_code = status.HTTP_200_OK
    return CommonResponse(
        message="Generation costs fetched successfully",
        success=True,
        payload=GenerationCostManager.get_all_costs(),
    )
