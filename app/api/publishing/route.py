from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.api.deps import verify_scheduler_caller
from app.api.publishing.service import PublishSweepService, SelectionPolicy, SweepKind
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.database import db_session

router = APIRouter(dependencies=[Depends(verify_scheduler_caller)])


async def _run_sweep(
    response: Response,
    session: AsyncSession,
    kind: SweepKind,
    policy: SelectionPolicy,
    message: str,
) -> CommonResponse:
    try:
        service = PublishSweepService(session)
        result = await service.run(kind=kind, policy=policy)

        response.status_code = status.HTTP_200_OK
        return CommonResponse(message=message, success=True, payload=result.to_dict())

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)


@router.api_route(
    "/cron/publish-posts", methods=["GET", "POST"], name="Publish due posts"
)
async def publish_posts(
    response: Response,
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    return await _run_sweep(
        response,
        session,
        SweepKind.POSTS,
        SelectionPolicy.CRON,
        "Post publishing job completed",
    )


@router.api_route(
    "/cron/publish-stories", methods=["GET", "POST"], name="Publish due stories"
)
async def publish_stories(
    response: Response,
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    return await _run_sweep(
        response,
        session,
        SweepKind.STORIES,
        SelectionPolicy.CRON,
        "Story publishing job completed",
    )


@router.api_route(
    "/scheduler/check", methods=["GET", "POST"], name="Check scheduled posts"
)
async def scheduler_check(
    response: Response,
    session: AsyncSession = Depends(db_session),
) -> CommonResponse:
    return await _run_sweep(
        response,
        session,
        SweepKind.POSTS,
        SelectionPolicy.SCHEDULER_CHECK,
        "Scheduler check completed",
    )
