import uuid as uuid_pkg
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlalchemy.types import JSON
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# create common models for the timestamp and uuid
class UUIDModel(SQLModel):
    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )


class TimestampModel(SQLModel):
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        sa_column_kwargs={"onupdate": utc_now},
    )


class User(UUIDModel, TimestampModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, index=True, unique=True)
    hashed_password: str = Field(nullable=False)
    first_name: Optional[str] = Field(default=None, nullable=True)
    last_name: Optional[str] = Field(default=None, nullable=True)
    is_active: bool = Field(default=True)
    last_login_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    def to_public_dict(self) -> Dict:
        return {
            "id": str(self.id),
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }


class LedgerAction(str, Enum):
    GRANT = "grant"  # Default grant on balance creation
    ADD = "add"
    DEDUCT = "deduct"
    REFUND = "refund"
    BONUS_DEDUCT = "bonus_deduct"


class CreditBalance(UUIDModel, TimestampModel, table=True):
    __tablename__ = "credit_balances"

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True, unique=True)
    total_credits: int = Field(default=0, nullable=False)
    used_credits: int = Field(default=0, nullable=False)
    remaining_credits: int = Field(default=0, nullable=False)
    # Secondary pool spent by AI helper features
    bonus_credits: int = Field(default=0, nullable=False)

    def to_dict(self) -> Dict:
        return {
            "user_id": str(self.user_id),
            "total_credits": self.total_credits,
            "used_credits": self.used_credits,
            "remaining_credits": self.remaining_credits,
            "bonus_credits": self.bonus_credits,
            "updated_at": self.updated_at,
        }


class CreditLedgerEntry(UUIDModel, table=True):
    """Append-only audit record; rows are never updated or deleted."""

    __tablename__ = "credit_ledger_entries"

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)
    action: LedgerAction = Field(nullable=False)
    action_type: str = Field(nullable=False)
    amount: int = Field(nullable=False)
    balance_after: int = Field(nullable=False)
    model_used: Optional[str] = Field(default=None, nullable=True)
    duration: Optional[int] = Field(default=None, nullable=True)
    description: Optional[str] = Field(default=None, nullable=True)
    ledger_metadata: Dict = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


class ContentStatus(str, Enum):
    DRAFT = "draft"
    GENERATING = "generating"
    READY = "ready"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"  # Claimed by a publish sweep
    PUBLISHED = "published"
    FAILED = "failed"


class PostMediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    REEL = "reel"
    CAROUSEL = "carousel"


class StoryMediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ScheduledPost(UUIDModel, TimestampModel, table=True):
    __tablename__ = "scheduled_posts"

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)
    original_prompt: str = Field(nullable=False)
    caption: Optional[str] = Field(default=None, nullable=True)
    media_type: PostMediaType = Field(default=PostMediaType.IMAGE, nullable=False)
    media_url: Optional[str] = Field(default=None, nullable=True)
    thumbnail_url: Optional[str] = Field(default=None, nullable=True)
    carousel_items: Optional[List[Dict]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    settings: Dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=True))
    status: ContentStatus = Field(default=ContentStatus.GENERATING, index=True)
    scheduled_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )
    posted_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    external_media_id: Optional[str] = Field(default=None, nullable=True)
    error_message: Optional[str] = Field(default=None, nullable=True)

    def to_dict(self) -> Dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "original_prompt": self.original_prompt,
            "caption": self.caption,
            "media_type": self.media_type,
            "media_url": self.media_url,
            "thumbnail_url": self.thumbnail_url,
            "carousel_items": self.carousel_items,
            "settings": self.settings,
            "status": self.status,
            "scheduled_at": self.scheduled_at,
            "posted_at": self.posted_at,
            "external_media_id": self.external_media_id,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class ScheduledStory(UUIDModel, TimestampModel, table=True):
    __tablename__ = "scheduled_stories"

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)
    media_type: StoryMediaType = Field(nullable=False)
    url: Optional[str] = Field(default=None, nullable=True)
    thumbnail: Optional[str] = Field(default=None, nullable=True)
    caption: Optional[str] = Field(default=None, nullable=True)
    duration: int = Field(default=5)
    stickers: Optional[List[Dict]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    status: ContentStatus = Field(default=ContentStatus.SCHEDULED, index=True)
    scheduled_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    posted_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    external_media_id: Optional[str] = Field(default=None, nullable=True)
    error_message: Optional[str] = Field(default=None, nullable=True)

    def to_dict(self) -> Dict:
        return {
            "id": str(self.id),
            "media_type": self.media_type,
            "url": self.url,
            "thumbnail": self.thumbnail,
            "caption": self.caption,
            "duration": self.duration,
            "stickers": self.stickers,
            "status": self.status,
            "scheduled_at": self.scheduled_at,
            "posted_at": self.posted_at,
            "external_media_id": self.external_media_id,
            "error_message": self.error_message,
            "created_at": self.created_at,
        }


class Platform(str, Enum):
    INSTAGRAM = "instagram"


class PlatformConnection(UUIDModel, TimestampModel, table=True):
    __tablename__ = "platform_connections"
    __table_args__ = (UniqueConstraint("user_id", "platform"),)

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)
    platform: Platform = Field(default=Platform.INSTAGRAM, nullable=False)
    access_token: Optional[str] = Field(default=None, nullable=True)
    platform_user_id: Optional[str] = Field(default=None, nullable=True)
    username: Optional[str] = Field(default=None, nullable=True)
    token_expires_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    is_active: bool = Field(default=True)


class NotificationType(str, Enum):
    VIDEO = "video"
    PHOTO = "photo"
    MUSIC = "music"
    CREDITS = "credits"
    FEATURE = "feature"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(UUIDModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid_pkg.UUID = Field(nullable=False, index=True)
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)
    type: NotificationType = Field(default=NotificationType.INFO, nullable=False)
    is_read: bool = Field(default=False, index=True)
    link: Optional[str] = Field(default=None, nullable=True)
    notification_metadata: Dict = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


metadata = SQLModel.metadata
