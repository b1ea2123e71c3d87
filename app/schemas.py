import uuid as uuid_pkg
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from app.common.generation_costs import GenerationAction
from app.models import ContentStatus, NotificationType, PostMediaType, StoryMediaType


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class DeductCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    action_type: str = "generation"
    model_used: Optional[str] = None
    duration: Optional[int] = None
    description: Optional[str] = None
    metadata: Optional[dict] = None


class DeductAICreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    action_type: str = "ai_assist"
    description: Optional[str] = None


class AddCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    description: Optional[str] = None


class RefundCreditsRequest(BaseModel):
    amount: int = Field(gt=0)
    reason: Optional[str] = None


class ChargeGenerationRequest(BaseModel):
    action: GenerationAction
    quality: Optional[str] = None
    clips: int = Field(default=1, ge=1)
    duration: Optional[int] = Field(default=None, gt=0)
    credits_per_second: Optional[int] = Field(default=None, gt=0)


class CarouselItem(BaseModel):
    url: str
    type: StoryMediaType = StoryMediaType.IMAGE


class SaveDraftRequest(BaseModel):
    original_prompt: str = "AI Generated Video"
    caption: Optional[str] = None
    media_type: PostMediaType = PostMediaType.VIDEO
    media_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    carousel_items: Optional[List[CarouselItem]] = None
    settings: Optional[Dict] = None
    status: ContentStatus = ContentStatus.GENERATING


class SchedulePostRequest(BaseModel):
    post_id: uuid_pkg.UUID
    scheduled_at: datetime
    caption: Optional[str] = None


class CreateStoryRequest(BaseModel):
    type: Optional[StoryMediaType] = None
    url: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    thumbnail: Optional[str] = None
    caption: Optional[str] = None
    duration: int = Field(default=5, gt=0)
    stickers: Optional[List[Dict]] = None


class UpdateStoryRequest(BaseModel):
    url: Optional[str] = None
    caption: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    stickers: Optional[List[Dict]] = None
    duration: Optional[int] = Field(default=None, gt=0)


class CreateNotificationRequest(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None
    metadata: Optional[Dict] = None


class MarkNotificationsReadRequest(BaseModel):
    notification_id: Optional[uuid_pkg.UUID] = None
    mark_all: bool = False
