"""
Playlist endpoints:
  POST   /playlists                          — create
  GET    /playlists/user/{user_id}           — playlists owned by a user
  GET    /playlists/{id}                     — playlist with its videos
  PATCH  /playlists/{id}                     — rename / describe
  DELETE /playlists/{id}                     — delete with its memberships
  PATCH  /playlists/add/{video_id}/{id}      — add a video (set semantics)
  PATCH  /playlists/remove/{video_id}/{id}   — remove a video
"""
import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.database import get_db
from vidshare.errors import InvalidArgument
from vidshare.models import Playlist, PlaylistVideo, User, Video
from vidshare.schemas import (
    ApiResponse,
    PlaylistBody,
    PlaylistDetail,
    PlaylistMembership,
    PlaylistResponse,
    VideoResponse,
    respond,
)
from vidshare.security import get_current_user
from vidshare.services.content import delete_playlist_cascade, get_or_404, get_owned

logger = logging.getLogger(__name__)
router = APIRouter()


async def _playlist_videos(db: AsyncSession, playlist_id: uuid.UUID) -> list[Video]:
    rows = await db.execute(
        select(Video)
        .join(PlaylistVideo, PlaylistVideo.video_id == Video.id)
        .where(PlaylistVideo.playlist_id == playlist_id)
        .order_by(PlaylistVideo.added_at.asc(), Video.id.asc())
    )
    return list(rows.scalars().all())


async def _membership(db: AsyncSession, playlist_id: uuid.UUID) -> PlaylistMembership:
    playlist = await get_or_404(db, Playlist, playlist_id)
    videos = await _playlist_videos(db, playlist_id)
    return PlaylistMembership(id=playlist.id, name=playlist.name, videos=[v.id for v in videos])


async def _detail(db: AsyncSession, playlist: Playlist) -> PlaylistDetail:
    videos = await _playlist_videos(db, playlist.id)
    return PlaylistDetail(
        **PlaylistResponse.model_validate(playlist).model_dump(),
        videos=[VideoResponse.model_validate(v) for v in videos],
    )


@router.post(
    "",
    response_model=ApiResponse[PlaylistResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_playlist(
    body: PlaylistBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.name.strip() or not body.description.strip():
        raise InvalidArgument("Name and description are required")

    playlist = Playlist(
        owner_id=current_user.id,
        name=body.name.strip(),
        description=body.description.strip(),
    )
    db.add(playlist)
    await db.flush()
    await db.refresh(playlist)
    logger.info("Playlist %s created by user %s", playlist.id, current_user.id)
    return respond(PlaylistResponse.model_validate(playlist), "Playlist created successfully", 201)


@router.get("/user/{user_id}", response_model=ApiResponse[list[PlaylistDetail]])
async def get_user_playlists(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Playlist)
        .where(Playlist.owner_id == user_id)
        .order_by(Playlist.created_at.desc(), Playlist.id.desc())
    )
    playlists = [await _detail(db, p) for p in rows.scalars().all()]
    return respond(playlists, "Playlists fetched successfully")


@router.get("/{playlist_id}", response_model=ApiResponse[PlaylistDetail])
async def get_playlist(
    playlist_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await get_or_404(db, Playlist, playlist_id)
    return respond(await _detail(db, playlist), "Playlist fetched successfully")


@router.patch("/{playlist_id}", response_model=ApiResponse[PlaylistResponse])
async def update_playlist(
    playlist_id: uuid.UUID,
    body: PlaylistBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await get_owned(db, Playlist, playlist_id, current_user.id, "update")
    if not body.name.strip() or not body.description.strip():
        raise InvalidArgument("Name and description are required")

    playlist.name = body.name.strip()
    playlist.description = body.description.strip()
    await db.flush()
    await db.refresh(playlist)
    return respond(PlaylistResponse.model_validate(playlist), "Playlist updated successfully")


@router.delete("/{playlist_id}", response_model=ApiResponse[dict])
async def delete_playlist(
    playlist_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await get_owned(db, Playlist, playlist_id, current_user.id, "delete")
    await delete_playlist_cascade(db, playlist)
    logger.info("Playlist %s deleted", playlist_id)
    return respond({}, "Playlist deleted successfully")


@router.patch("/add/{video_id}/{playlist_id}", response_model=ApiResponse[PlaylistMembership])
async def add_video_to_playlist(
    video_id: uuid.UUID,
    playlist_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_owned(db, Playlist, playlist_id, current_user.id, "update")
    await get_or_404(db, Video, video_id)

    present = await db.execute(
        select(PlaylistVideo.video_id).where(
            PlaylistVideo.playlist_id == playlist_id,
            PlaylistVideo.video_id == video_id,
        )
    )
    if not present.first():
        db.add(PlaylistVideo(playlist_id=playlist_id, video_id=video_id))
        try:
            await db.flush()
        except IntegrityError:
            # Added concurrently; membership is a set so this is a no-op
            await db.rollback()

    return respond(await _membership(db, playlist_id), "Video added to playlist successfully")


@router.patch("/remove/{video_id}/{playlist_id}", response_model=ApiResponse[PlaylistMembership])
async def remove_video_from_playlist(
    video_id: uuid.UUID,
    playlist_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_owned(db, Playlist, playlist_id, current_user.id, "update")
    await db.execute(
        delete(PlaylistVideo)
        .where(PlaylistVideo.playlist_id == playlist_id, PlaylistVideo.video_id == video_id)
        .execution_options(synchronize_session=False)
    )
    return respond(await _membership(db, playlist_id), "Video removed from playlist successfully")
