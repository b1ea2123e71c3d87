from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from app.auth.auth_handler import AuthenticatedAccount, AuthHandler
from app.common.exceptions import server_error_message
from app.common.http_response_model import CommonResponse
from app.common.s3_file_upload import S3FileClient

router = APIRouter()

ALLOWED_CONTENT_PREFIXES = ("image/", "video/", "audio/")


def get_s3_client() -> S3FileClient:
    return S3FileClient()


@router.post("", name="Upload media")
async def upload_media(
    response: Response,
    file: UploadFile = File(...),
    account: AuthenticatedAccount = Depends(AuthHandler()),
    s3_client: S3FileClient = Depends(get_s3_client),
) -> CommonResponse:
    try:
        content_type = file.content_type or ""
        if not content_type.startswith(ALLOWED_CONTENT_PREFIXES):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported file type: {content_type or 'unknown'}",
            )

        content = await file.read()
        url = await run_in_threadpool(
            s3_client.upload_file_from_buffer,
            file.filename or "upload",
            f"uploads/{account.id}/{content_type.split('/')[0]}",
            content,
            content_type,
        )

        response.status_code = status.HTTP_201_CREATED
        return CommonResponse(
            message="File uploaded successfully",
            success=True,
            payload={"url": url, "content_type": content_type, "size": len(content)},
        )

    except HTTPException as http_err:
        response.status_code = http_err.status_code
        return CommonResponse(success=False, message=str(http_err.detail), payload=None)

    except Exception as e:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return CommonResponse(success=False, message=server_error_message(e), payload=None)
