from fastapi.routing import APIRouter

from app.api.auth.route import router as auth_router
from app.api.credits.route import router as credits_router
from app.api.instagram.route import router as instagram_router
from app.api.notifications.route import router as notifications_router
from app.api.posts.route import router as posts_router
from app.api.publishing.route import router as publishing_router
from app.api.stories.route import router as stories_router
from app.api.upload.route import router as upload_router

api_router = APIRouter()
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(credits_router, prefix="/credits", tags=["credits"])
api_router.include_router(posts_router, prefix="/posts", tags=["posts"])
api_router.include_router(stories_router, prefix="/stories", tags=["stories"])
api_router.include_router(instagram_router, prefix="/instagram", tags=["instagram"])
api_router.include_router(
    notifications_router, prefix="/notifications", tags=["notifications"]
)
api_router.include_router(upload_router, prefix="/upload", tags=["upload"])

# scheduler-only endpoints, called by the external cron trigger
api_router.include_router(publishing_router, tags=["publishing"])
