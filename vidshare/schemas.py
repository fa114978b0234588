"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
import uuid
from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# ──────────────────────────── Envelope ────────────────────────────────────

class ApiResponse(BaseModel, Generic[T]):
    """Uniform success envelope; ``success`` mirrors ``statusCode < 400``."""
    status_code: int = Field(200, alias="statusCode")
    data: T
    message: str = "Success"
    success: bool = True

    class Config:
        populate_by_name = True


def respond(data, message: str = "Success", status_code: int = 200) -> ApiResponse:
    return ApiResponse(
        status_code=status_code,
        data=data,
        message=message,
        success=status_code < 400,
    )


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None


# ──────────────────────────── Users / Auth ────────────────────────────────

class OwnerSummary(BaseModel):
    """Public profile fields joined onto content rows."""
    id: uuid.UUID
    username: str
    full_name: str
    avatar: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class PasswordChange(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AccountUpdate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class LoginResponse(TokenPair):
    user: UserResponse


class ChannelProfile(BaseModel):
    id: uuid.UUID
    username: str
    full_name: str
    email: str
    avatar: str
    cover_image: Optional[str]
    subscribers_count: int
    subscribed_to_count: int
    is_subscribed: bool


# ──────────────────────────── Videos ──────────────────────────────────────

class VideoResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VideoWithOwner(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime
    updated_at: datetime
    owner: OwnerSummary


class WatchHistoryItem(VideoWithOwner):
    watched_at: datetime


# ──────────────────────────── Comments / Tweets ───────────────────────────

class ContentBody(BaseModel):
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: uuid.UUID
    video_id: uuid.UUID
    owner_id: uuid.UUID
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentWithOwner(BaseModel):
    id: uuid.UUID
    content: str
    created_at: datetime
    updated_at: datetime
    owner: OwnerSummary


class TweetResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TweetWithOwner(BaseModel):
    id: uuid.UUID
    content: str
    created_at: datetime
    updated_at: datetime
    owner: OwnerSummary


# ──────────────────────────── Playlists ───────────────────────────────────

class PlaylistBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)


class PlaylistResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    description: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PlaylistDetail(PlaylistResponse):
    videos: list[VideoResponse]


class PlaylistMembership(BaseModel):
    id: uuid.UUID
    name: str
    videos: list[uuid.UUID]


# ──────────────────────────── Likes / Subscriptions ───────────────────────

class RelationStatus(BaseModel):
    """Result of a toggle: ``state`` is 'on' when the relation now exists."""
    target_type: str
    target_id: uuid.UUID
    state: str
    created_at: Optional[datetime] = None


class LikedVideo(BaseModel):
    liked_at: datetime
    video: VideoWithOwner


class LikedTweet(BaseModel):
    liked_at: datetime
    tweet: TweetWithOwner


class SubscriberEntry(BaseModel):
    subscriber_id: uuid.UUID
    username: str
    full_name: str
    avatar: str
    subscribed_at: datetime


class SubscribedChannelEntry(BaseModel):
    channel_id: uuid.UUID
    username: str
    full_name: str
    avatar: str
    subscribed_at: datetime


# ──────────────────────────── Dashboard ───────────────────────────────────

class ChannelStats(BaseModel):
    total_likes: int
    total_subscribers: int
    total_videos: int
    total_views: int


class HealthStatus(BaseModel):
    status: str
    service: str
