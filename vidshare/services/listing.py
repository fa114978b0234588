"""
Joined, paginated read queries.

Every listing is a single SELECT composed from:

  filter  → WHERE (publication flag, free-text match, owner equality, …)
  join    → INNER JOIN users for the owner's public profile
  sort    → allow-listed column + direction, primary key as tie-breaker
  page    → LIMIT/OFFSET, plus one COUNT over the same filtered statement

The owner join goes through a non-null foreign key to a unique id, so every
row carries exactly one profile; a row whose owner is gone drops out of the
result instead of surfacing with an empty owner.
"""
import logging
import math
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from opentelemetry import trace
from sqlalchemy import Select, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.errors import InvalidArgument
from vidshare.models import (
    Comment,
    Like,
    LikeTarget,
    Subscription,
    Tweet,
    User,
    Video,
    WatchHistoryEntry,
)
from vidshare.schemas import (
    ChannelProfile,
    ChannelStats,
    CommentWithOwner,
    LikedTweet,
    LikedVideo,
    OwnerSummary,
    Page,
    SubscribedChannelEntry,
    SubscriberEntry,
    TweetWithOwner,
    VideoWithOwner,
    WatchHistoryItem,
)
from vidshare.telemetry import LISTING_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Accepted ``sortBy`` values → storage columns. Anything else is rejected.
VIDEO_SORT_FIELDS = {
    "createdAt": Video.created_at,
    "created_at": Video.created_at,
    "updatedAt": Video.updated_at,
    "updated_at": Video.updated_at,
    "views": Video.views,
    "title": Video.title,
    "duration": Video.duration,
}

OWNER_COLUMNS = (User.id, User.username, User.full_name, User.avatar)


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    def __post_init__(self):
        if self.page < 1:
            raise InvalidArgument("page must be >= 1")
        if self.limit < 1:
            raise InvalidArgument("limit must be >= 1")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def resolve_sort(sort_by: Optional[str], sort_type: Optional[str]):
    """Map caller-supplied sort parameters onto an ORDER BY clause list."""
    column = Video.created_at
    if sort_by:
        if sort_by not in VIDEO_SORT_FIELDS:
            raise InvalidArgument(
                f"Cannot sort by '{sort_by}'; allowed: {', '.join(sorted(VIDEO_SORT_FIELDS))}"
            )
        column = VIDEO_SORT_FIELDS[sort_by]

    direction = (sort_type or "desc").lower()
    if direction not in ("asc", "desc"):
        raise InvalidArgument("sortType must be 'asc' or 'desc'")

    if direction == "asc":
        return [column.asc(), Video.id.asc()]
    return [column.desc(), Video.id.desc()]


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_ci(column, text: str):
    """Case-insensitive, unanchored substring match."""
    return func.lower(column).like(f"%{_escape_like(text.lower())}%", escape="\\")


def owner_summary(row) -> OwnerSummary:
    return OwnerSummary(
        id=row.owner_id_,
        username=row.owner_username,
        full_name=row.owner_full_name,
        avatar=row.owner_avatar,
    )


def _owner_columns():
    return (
        User.id.label("owner_id_"),
        User.username.label("owner_username"),
        User.full_name.label("owner_full_name"),
        User.avatar.label("owner_avatar"),
    )


def video_with_owner(row) -> VideoWithOwner:
    video = row.Video
    return VideoWithOwner(
        id=video.id,
        title=video.title,
        description=video.description,
        video_file=video.video_file,
        thumbnail=video.thumbnail,
        duration=video.duration,
        views=video.views,
        is_published=video.is_published,
        created_at=video.created_at,
        updated_at=video.updated_at,
        owner=owner_summary(row),
    )


def video_listing_query(
    *,
    search: Optional[str] = None,
    owner_id: Optional[uuid.UUID] = None,
    published_only: bool = True,
    order_by=None,
) -> Select:
    conditions = []
    if published_only:
        conditions.append(Video.is_published.is_(True))
    if owner_id is not None:
        conditions.append(Video.owner_id == owner_id)
    if search:
        conditions.append(or_(contains_ci(Video.title, search), contains_ci(Video.description, search)))

    stmt = select(Video, *_owner_columns()).join(User, Video.owner_id == User.id)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    return stmt.order_by(*(order_by if order_by is not None else resolve_sort(None, None)))


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page_request: PageRequest,
    row_mapper: Callable[[Any], Any],
    listing: str = "generic",
) -> Page:
    """Run ``stmt`` for one page and count all rows matching its filters."""
    start = time.perf_counter()
    with tracer.start_as_current_span("paginate") as span:
        span.set_attribute("listing.name", listing)
        span.set_attribute("listing.page", page_request.page)

        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await db.execute(count_stmt)).scalar_one()

        rows = await db.execute(stmt.limit(page_request.limit).offset(page_request.offset))
        items = [row_mapper(row) for row in rows.all()]

        span.set_attribute("listing.total", total)

    LISTING_LATENCY.labels(listing=listing).observe(time.perf_counter() - start)

    total_pages = math.ceil(total / page_request.limit) if total else 0
    has_next = page_request.page < total_pages
    has_prev = page_request.page > 1
    return Page(
        items=items,
        total=total,
        page=page_request.page,
        limit=page_request.limit,
        total_pages=total_pages,
        has_next=has_next,
        has_prev=has_prev,
        next_page=page_request.page + 1 if has_next else None,
        prev_page=page_request.page - 1 if has_prev else None,
    )


def visible_to(viewer_id: Optional[uuid.UUID]):
    """Published videos, plus unpublished ones owned by ``viewer_id``."""
    visible = Video.is_published.is_(True)
    if viewer_id is not None:
        visible = or_(visible, Video.owner_id == viewer_id)
    return visible


async def get_video_with_owner(
    db: AsyncSession, video_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None
) -> Optional[VideoWithOwner]:
    """Single joined video; unpublished videos are visible to their owner only."""
    stmt = (
        select(Video, *_owner_columns())
        .join(User, Video.owner_id == User.id)
        .where(Video.id == video_id, visible_to(viewer_id))
    )
    row = (await db.execute(stmt)).first()
    return video_with_owner(row) if row else None


# ───────────────────────────── Comments ───────────────────────────────────

def _comment_with_owner(row) -> CommentWithOwner:
    comment = row.Comment
    return CommentWithOwner(
        id=comment.id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        owner=owner_summary(row),
    )


async def video_comments(db: AsyncSession, video_id: uuid.UUID, page_request: PageRequest) -> Page:
    stmt = (
        select(Comment, *_owner_columns())
        .join(User, Comment.owner_id == User.id)
        .where(Comment.video_id == video_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return await paginate(db, stmt, page_request, _comment_with_owner, listing="comments")


# ───────────────────────────── Tweets ─────────────────────────────────────

def _tweet_with_owner(row) -> TweetWithOwner:
    tweet = row.Tweet
    return TweetWithOwner(
        id=tweet.id,
        content=tweet.content,
        created_at=tweet.created_at,
        updated_at=tweet.updated_at,
        owner=owner_summary(row),
    )


async def user_tweets(db: AsyncSession, user_id: uuid.UUID) -> list[TweetWithOwner]:
    stmt = (
        select(Tweet, *_owner_columns())
        .join(User, Tweet.owner_id == User.id)
        .where(Tweet.owner_id == user_id)
        .order_by(Tweet.created_at.desc(), Tweet.id.desc())
    )
    return [_tweet_with_owner(row) for row in (await db.execute(stmt)).all()]


# ───────────────────────────── Watch history ──────────────────────────────

async def watch_history(db: AsyncSession, user_id: uuid.UUID) -> list[WatchHistoryItem]:
    stmt = (
        select(Video, WatchHistoryEntry.watched_at, *_owner_columns())
        .join(WatchHistoryEntry, WatchHistoryEntry.video_id == Video.id)
        .join(User, Video.owner_id == User.id)
        .where(WatchHistoryEntry.user_id == user_id)
        .order_by(WatchHistoryEntry.watched_at.desc(), Video.id.desc())
    )
    return [
        WatchHistoryItem(**video_with_owner(row).model_dump(), watched_at=row.watched_at)
        for row in (await db.execute(stmt)).all()
    ]


# ───────────────────────────── Likes ──────────────────────────────────────

async def liked_videos(db: AsyncSession, user_id: uuid.UUID) -> list[LikedVideo]:
    stmt = (
        select(Video, Like.created_at.label("liked_at"), *_owner_columns())
        .join(Like, and_(Like.content_id == Video.id, Like.content_type == LikeTarget.VIDEO))
        .join(User, Video.owner_id == User.id)
        .where(Like.liked_by == user_id)
        .order_by(Like.created_at.desc(), Like.id.desc())
    )
    return [
        LikedVideo(liked_at=row.liked_at, video=video_with_owner(row))
        for row in (await db.execute(stmt)).all()
    ]


async def liked_tweets(db: AsyncSession, user_id: uuid.UUID) -> list[LikedTweet]:
    stmt = (
        select(Tweet, Like.created_at.label("liked_at"), *_owner_columns())
        .join(Like, and_(Like.content_id == Tweet.id, Like.content_type == LikeTarget.TWEET))
        .join(User, Tweet.owner_id == User.id)
        .where(Like.liked_by == user_id)
        .order_by(Like.created_at.desc(), Like.id.desc())
    )
    return [
        LikedTweet(liked_at=row.liked_at, tweet=_tweet_with_owner(row))
        for row in (await db.execute(stmt)).all()
    ]


# ───────────────────────────── Subscriptions ──────────────────────────────

async def channel_subscribers(db: AsyncSession, channel_id: uuid.UUID) -> list[SubscriberEntry]:
    stmt = (
        select(Subscription.created_at, *OWNER_COLUMNS)
        .join(User, Subscription.subscriber_id == User.id)
        .where(Subscription.channel_id == channel_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    return [
        SubscriberEntry(
            subscriber_id=row.id,
            username=row.username,
            full_name=row.full_name,
            avatar=row.avatar,
            subscribed_at=row.created_at,
        )
        for row in (await db.execute(stmt)).all()
    ]


async def subscribed_channels(db: AsyncSession, subscriber_id: uuid.UUID) -> list[SubscribedChannelEntry]:
    stmt = (
        select(Subscription.created_at, *OWNER_COLUMNS)
        .join(User, Subscription.channel_id == User.id)
        .where(Subscription.subscriber_id == subscriber_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
    )
    return [
        SubscribedChannelEntry(
            channel_id=row.id,
            username=row.username,
            full_name=row.full_name,
            avatar=row.avatar,
            subscribed_at=row.created_at,
        )
        for row in (await db.execute(stmt)).all()
    ]


async def channel_profile(
    db: AsyncSession, username: str, viewer_id: uuid.UUID
) -> Optional[ChannelProfile]:
    subscribers = (
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == User.id)
        .scalar_subquery()
    )
    subscribed_to = (
        select(func.count(Subscription.id))
        .where(Subscription.subscriber_id == User.id)
        .scalar_subquery()
    )
    is_subscribed = (
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == User.id, Subscription.subscriber_id == viewer_id)
        .scalar_subquery()
    )
    stmt = select(
        User,
        subscribers.label("subscribers_count"),
        subscribed_to.label("subscribed_to_count"),
        case((is_subscribed > 0, True), else_=False).label("is_subscribed"),
    ).where(User.username == username.strip().lower())

    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    user = row.User
    return ChannelProfile(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        avatar=user.avatar,
        cover_image=user.cover_image,
        subscribers_count=row.subscribers_count,
        subscribed_to_count=row.subscribed_to_count,
        is_subscribed=bool(row.is_subscribed),
    )


# ───────────────────────────── Dashboard ──────────────────────────────────

async def channel_stats(db: AsyncSession, user_id: uuid.UUID) -> ChannelStats:
    """Merge three independent aggregates; sums default to 0 with no videos."""
    total_likes = (
        await db.execute(select(func.count(Like.id)).where(Like.liked_by == user_id))
    ).scalar_one()
    total_subscribers = (
        await db.execute(
            select(func.count(Subscription.id)).where(Subscription.channel_id == user_id)
        )
    ).scalar_one()
    videos = (
        await db.execute(
            select(
                func.count(Video.id).label("total_videos"),
                func.coalesce(func.sum(Video.views), 0).label("total_views"),
            ).where(Video.owner_id == user_id)
        )
    ).one()

    return ChannelStats(
        total_likes=total_likes or 0,
        total_subscribers=total_subscribers or 0,
        total_videos=videos.total_videos or 0,
        total_views=int(videos.total_views or 0),
    )
