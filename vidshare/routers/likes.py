"""
Like endpoints:
  POST /likes/toggle/video/{id}   — like / unlike a video
  POST /likes/toggle/comment/{id} — like / unlike a comment
  POST /likes/toggle/tweet/{id}   — like / unlike a tweet
  GET  /likes/videos              — videos the current user liked
  GET  /likes/tweets              — tweets the current user liked

A toggle answers 201 with state "on" when it created the like and 200 with
state "off" when it removed it.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.database import get_db
from vidshare.models import LikeTarget, User
from vidshare.schemas import ApiResponse, LikedTweet, LikedVideo, RelationStatus, respond
from vidshare.security import get_current_user
from vidshare.services import listing
from vidshare.services.relations import RelationState, toggle_like

logger = logging.getLogger(__name__)
router = APIRouter()


async def _toggle(
    db: AsyncSession,
    response: Response,
    actor_id: uuid.UUID,
    content_type: LikeTarget,
    content_id: uuid.UUID,
) -> ApiResponse:
    state, record = await toggle_like(db, actor_id, content_type, content_id)
    label = content_type.value.capitalize()
    result = RelationStatus(
        target_type=content_type.value,
        target_id=content_id,
        state=state.value,
        created_at=record.created_at if record is not None else None,
    )
    if state is RelationState.ON:
        response.status_code = status.HTTP_201_CREATED
        return respond(result, f"{label} liked successfully", 201)
    return respond(result, f"{label} unliked successfully")


@router.post("/toggle/video/{video_id}", response_model=ApiResponse[RelationStatus])
async def toggle_video_like(
    video_id: uuid.UUID,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, response, current_user.id, LikeTarget.VIDEO, video_id)


@router.post("/toggle/comment/{comment_id}", response_model=ApiResponse[RelationStatus])
async def toggle_comment_like(
    comment_id: uuid.UUID,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, response, current_user.id, LikeTarget.COMMENT, comment_id)


@router.post("/toggle/tweet/{tweet_id}", response_model=ApiResponse[RelationStatus])
async def toggle_tweet_like(
    tweet_id: uuid.UUID,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, response, current_user.id, LikeTarget.TWEET, tweet_id)


@router.get("/videos", response_model=ApiResponse[list[LikedVideo]])
async def get_liked_videos(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    videos = await listing.liked_videos(db, current_user.id)
    return respond(videos, "Liked videos fetched successfully")


@router.get("/tweets", response_model=ApiResponse[list[LikedTweet]])
async def get_liked_tweets(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweets = await listing.liked_tweets(db, current_user.id)
    return respond(tweets, "Liked tweets fetched successfully")
