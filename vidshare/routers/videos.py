"""
Video endpoints:
  GET    /videos                     — paginated listing joined with owner profile
  POST   /videos                     — upload video file + thumbnail, create record
  GET    /videos/{id}                — single video with owner profile
  PATCH  /videos/{id}                — edit title/description (optional new thumbnail)
  PATCH  /videos/{id}/thumbnail      — replace thumbnail
  DELETE /videos/{id}                — delete record, its dependents and hosted files
  PATCH  /videos/toggle/publish/{id} — flip publication flag
  PATCH  /videos/{id}/view           — count a view once per user, record watch history

Asset writes always run upload → record update → old asset removal, so a
record never references an object that is not on the media host.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from opentelemetry import trace
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.clients.media_store import delete_asset, replace_asset, upload_asset
from vidshare.config import settings
from vidshare.database import get_db
from vidshare.errors import InvalidArgument, NotFound
from vidshare.models import User, Video, WatchHistoryEntry
from vidshare.schemas import ApiResponse, Page, VideoResponse, VideoWithOwner, respond
from vidshare.security import get_current_user
from vidshare.services import listing
from vidshare.services.content import delete_video_cascade, get_owned

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _video_response(video: Video) -> VideoResponse:
    return VideoResponse.model_validate(video)


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgument(message)
    return value.strip()


@router.get("", response_model=ApiResponse[Page[VideoWithOwner]])
async def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    query: Optional[str] = Query(None, description="Case-insensitive match on title/description"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_type: Optional[str] = Query(None, alias="sortType"),
    user_id: Optional[uuid.UUID] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("list_videos") as span:
        span.set_attribute("listing.query", query or "")
        stmt = listing.video_listing_query(
            search=query.strip() if query else None,
            owner_id=user_id,
            published_only=True,
            order_by=listing.resolve_sort(sort_by, sort_type),
        )
        result = await listing.paginate(
            db, stmt, listing.PageRequest(page, limit), listing.video_with_owner, listing="videos"
        )
    return respond(result, "Videos fetched successfully")


@router.post(
    "",
    response_model=ApiResponse[VideoResponse],
    status_code=status.HTTP_201_CREATED,
)
async def publish_video(
    title: str = Form(""),
    description: str = Form(""),
    duration: float = Form(0.0, ge=0),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Publish a video.

    1. Validate text fields and presence of both files.
    2. Upload the video file, then the thumbnail, to the media host.
    3. Insert the record pointing at both objects.
    If step 2 or 3 fails, objects already uploaded are removed again.
    """
    with tracer.start_as_current_span("publish_video") as span:
        title = _require_text(title, "Title and description are required")
        description = _require_text(description, "Title and description are required")
        if video_file is None or not video_file.filename:
            raise InvalidArgument("Video file is required")
        if thumbnail is None or not thumbnail.filename:
            raise InvalidArgument("Thumbnail is required")

        uploaded = []
        try:
            media = await upload_asset(video_file, "videos")
            uploaded.append(media)
            thumb = await upload_asset(thumbnail, "thumbnails")
            uploaded.append(thumb)

            video = Video(
                owner_id=current_user.id,
                title=title,
                description=description,
                video_file=media.url,
                video_file_key=media.key,
                thumbnail=thumb.url,
                thumbnail_key=thumb.key,
                duration=duration,
            )
            db.add(video)
            await db.flush()
            await db.refresh(video)
        except Exception:
            for stored in uploaded:
                await delete_asset(stored.key)
            raise

        span.set_attribute("video.id", str(video.id))
        logger.info("Video %s published by user %s", video.id, current_user.id)
        return respond(_video_response(video), "Video published successfully", 201)


@router.get("/{video_id}", response_model=ApiResponse[VideoWithOwner])
async def get_video(
    video_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video = await listing.get_video_with_owner(db, video_id, viewer_id=current_user.id)
    if video is None:
        raise NotFound("Video not found")
    return respond(video, "Video fetched successfully")


@router.patch("/{video_id}/view", response_model=ApiResponse[dict])
async def increment_view_count(
    video_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Count one view per user. The watch-history row is written first; its
    primary key makes a repeat (or a concurrent duplicate) a no-op.
    Unpublished videos count only for their owner, like ``GET /videos/{id}``.
    """
    user_id = current_user.id
    video = (
        await db.execute(
            select(Video).where(Video.id == video_id, listing.visible_to(user_id))
        )
    ).scalar_one_or_none()
    if video is None:
        raise NotFound("Video not found")

    seen = await db.execute(
        select(WatchHistoryEntry.video_id).where(
            WatchHistoryEntry.user_id == user_id,
            WatchHistoryEntry.video_id == video_id,
        )
    )
    if seen.first():
        return respond({}, "View already counted")

    db.add(WatchHistoryEntry(user_id=user_id, video_id=video_id))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        return respond({}, "View already counted")

    await db.execute(
        update(Video)
        .where(Video.id == video_id)
        .values(views=Video.views + 1)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(video)
    return respond({"views": video.views}, "View count incremented")


@router.patch("/{video_id}", response_model=ApiResponse[VideoResponse])
async def update_video_details(
    video_id: uuid.UUID,
    title: str = Form(""),
    description: str = Form(""),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video = await get_owned(db, Video, video_id, current_user.id, "update")
    title = _require_text(title, "Title and description are required")
    description = _require_text(description, "Title and description are required")

    async def apply(media=None):
        video.title = title
        video.description = description
        if media is not None:
            video.thumbnail = media.url
            video.thumbnail_key = media.key
        await db.commit()

    if thumbnail is not None and thumbnail.filename:
        await replace_asset(thumbnail, "thumbnails", video.thumbnail_key, apply)
    else:
        await apply()

    await db.refresh(video)
    return respond(_video_response(video), "Video details updated successfully")


@router.patch("/{video_id}/thumbnail", response_model=ApiResponse[VideoResponse])
async def update_video_thumbnail(
    video_id: uuid.UUID,
    thumbnail: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if thumbnail is None or not thumbnail.filename:
        raise InvalidArgument("Thumbnail is required")
    video = await get_owned(db, Video, video_id, current_user.id, "update")

    async def apply(media):
        video.thumbnail = media.url
        video.thumbnail_key = media.key
        await db.commit()

    await replace_asset(thumbnail, "thumbnails", video.thumbnail_key, apply)
    await db.refresh(video)
    return respond(_video_response(video), "Thumbnail updated successfully")


@router.delete("/{video_id}", response_model=ApiResponse[dict])
async def delete_video(
    video_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video = await get_owned(db, Video, video_id, current_user.id, "delete")
    keys = [video.video_file_key, video.thumbnail_key]

    await delete_video_cascade(db, video)
    # Record removal is durable before the hosted objects go away
    await db.commit()
    for key in keys:
        await delete_asset(key)

    return respond({}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}", response_model=ApiResponse[VideoResponse])
async def toggle_publish_status(
    video_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video = await get_owned(db, Video, video_id, current_user.id, "update")
    video.is_published = not video.is_published
    await db.flush()
    await db.refresh(video)
    message = "Video published" if video.is_published else "Video unpublished"
    return respond(_video_response(video), message)
