"""
Ownership checks and delete cascades shared by the content routers.

Deletes cascade explicitly: removing a video, comment, tweet or playlist
also removes every row that points at it, so listings never meet a
dangling reference.
"""
import logging
import uuid
from typing import Optional, TypeVar

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.errors import Forbidden, NotFound
from vidshare.models import (
    Comment,
    Like,
    LikeTarget,
    PlaylistVideo,
    WatchHistoryEntry,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


async def get_or_404(db: AsyncSession, model: type[ModelT], entity_id: uuid.UUID,
                     label: Optional[str] = None) -> ModelT:
    entity = await db.get(model, entity_id)
    if entity is None:
        raise NotFound(f"{label or model.__name__} not found")
    return entity


def ensure_owner(entity, actor_id: uuid.UUID, action: str = "modify") -> None:
    """Raise Forbidden unless ``actor_id`` owns ``entity``."""
    if entity.owner_id != actor_id:
        raise Forbidden(
            f"You are not allowed to {action} this {type(entity).__name__.lower()}"
        )


async def get_owned(db: AsyncSession, model: type[ModelT], entity_id: uuid.UUID,
                    actor_id: uuid.UUID, action: str = "modify") -> ModelT:
    entity = await get_or_404(db, model, entity_id)
    ensure_owner(entity, actor_id, action)
    return entity


def _bulk_delete(stmt):
    return stmt.execution_options(synchronize_session=False)


async def delete_likes_on(db: AsyncSession, content_type: LikeTarget, content_ids) -> None:
    await db.execute(_bulk_delete(
        delete(Like).where(Like.content_type == content_type, Like.content_id.in_(content_ids))
    ))


async def delete_video_cascade(db: AsyncSession, video) -> None:
    comment_ids = (
        await db.execute(select(Comment.id).where(Comment.video_id == video.id))
    ).scalars().all()

    await db.execute(_bulk_delete(
        delete(Like).where(
            or_(
                and_(Like.content_type == LikeTarget.VIDEO, Like.content_id == video.id),
                and_(Like.content_type == LikeTarget.COMMENT, Like.content_id.in_(comment_ids)),
            )
        )
    ))
    await db.execute(_bulk_delete(delete(Comment).where(Comment.video_id == video.id)))
    await db.execute(_bulk_delete(delete(PlaylistVideo).where(PlaylistVideo.video_id == video.id)))
    await db.execute(_bulk_delete(
        delete(WatchHistoryEntry).where(WatchHistoryEntry.video_id == video.id)
    ))
    await db.delete(video)
    await db.flush()
    logger.info("Deleted video %s with %d comments", video.id, len(comment_ids))


async def delete_comment_cascade(db: AsyncSession, comment) -> None:
    await delete_likes_on(db, LikeTarget.COMMENT, [comment.id])
    await db.delete(comment)
    await db.flush()


async def delete_tweet_cascade(db: AsyncSession, tweet) -> None:
    await delete_likes_on(db, LikeTarget.TWEET, [tweet.id])
    await db.delete(tweet)
    await db.flush()


async def delete_playlist_cascade(db: AsyncSession, playlist) -> None:
    await db.execute(_bulk_delete(
        delete(PlaylistVideo).where(PlaylistVideo.playlist_id == playlist.id)
    ))
    await db.delete(playlist)
    await db.flush()
