from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, UJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import api_router
from app.common.http_response_model import CommonResponse
from app.common.middleware import log_request_middleware
from app.config import settings
from app.database import async_engine, init_db
from app.logger.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")
    yield
    await async_engine.dispose()


def get_app(init_database: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0",
        docs_url=f"{settings.API_PREFIX}/docs/",
        redoc_url=f"{settings.API_PREFIX}/redoc/",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        default_response_class=UJSONResponse,
        lifespan=lifespan if init_database else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", name="Content automation service")
    async def root():
        return {
            "message": settings.APP_NAME,
            "version": "1.0",
            "documentation": f"{settings.API_PREFIX}/docs/",
            "openapi": f"{settings.API_PREFIX}/openapi.json",
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.APP_ENV,
        }

    @app.get(f"{settings.API_PREFIX}/db-init", name="Initializing Database")
    async def db_init():
        await init_db()
        return {"message": "Database initialized"}

    @app.get(f"{settings.API_PREFIX}/health-check", name="Health Check")
    async def health_check():
        return {"message": "I am healthy"}

    app.include_router(router=api_router, prefix=settings.API_PREFIX)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error_message = exc.detail if exc.detail else "An error occurred."
        status_code = (
            exc.status_code
            if exc.status_code
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        response = CommonResponse(success=False, message=error_message, payload=None)
        return JSONResponse(
            status_code=status_code,
            content=response.model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        response = CommonResponse(
            success=False, message="Unprocessable Entity", payload=str(exc)
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=response.model_dump(),
        )

    app.middleware("http")(log_request_middleware)

    return app
