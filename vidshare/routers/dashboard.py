"""
Channel dashboard for the current user:
  GET /dashboard/stats  — likes given, subscribers, video count, total views
  GET /dashboard/videos — every video the user uploaded, published or not
"""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.database import get_db
from vidshare.models import User, Video
from vidshare.schemas import ApiResponse, ChannelStats, VideoResponse, respond
from vidshare.security import get_current_user
from vidshare.services import listing

router = APIRouter()


@router.get("/stats", response_model=ApiResponse[ChannelStats])
async def get_channel_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await listing.channel_stats(db, current_user.id)
    return respond(stats, "Channel stats retrieved successfully")


@router.get("/videos", response_model=ApiResponse[list[VideoResponse]])
async def get_channel_videos(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Video)
        .where(Video.owner_id == current_user.id)
        .order_by(Video.created_at.desc(), Video.id.desc())
    )
    videos = [VideoResponse.model_validate(v) for v in rows.scalars().all()]
    return respond(videos, "Videos retrieved successfully")
