"""
On/off relations between a user and a target: likes and subscriptions.

A relation is "on" while its row exists. Each toggle flips that state exactly
once: a single DELETE either removes the row (now off) or matches nothing, in
which case the row is inserted (now on). The unique constraint on the
relation key turns a concurrent double-insert into an IntegrityError; the
losing call then deletes the winner's row, so two racing toggles still net
out to two flips and never leave two rows behind.

On InnoDB/TiDB the same race can instead surface as a deadlock, since both
missed DELETEs hold gap locks that block each other's INSERT. The victim is
rolled back with an OperationalError and its flip is retried once against
the now-committed state.
"""
import enum
import logging
import uuid
from typing import Optional

from opentelemetry import trace
from sqlalchemy import and_, delete
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.errors import InvalidArgument, NotFound
from vidshare.models import Comment, Like, LikeTarget, Subscription, Tweet, User, Video
from vidshare.telemetry import RELATION_TOGGLES_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

LIKE_TARGET_MODELS = {
    LikeTarget.VIDEO: Video,
    LikeTarget.COMMENT: Comment,
    LikeTarget.TWEET: Tweet,
}


class RelationState(str, enum.Enum):
    ON = "on"
    OFF = "off"


DEADLOCK_RETRIES = 1


async def toggle_relation(db: AsyncSession, model, **key) -> tuple[RelationState, Optional[object]]:
    """Flip the existence of the ``model`` row identified by ``key``."""
    where = and_(*(getattr(model, column) == value for column, value in key.items()))

    for attempt in range(DEADLOCK_RETRIES + 1):
        try:
            return await _flip(db, model, where, key)
        except OperationalError as exc:
            await db.rollback()
            if attempt == DEADLOCK_RETRIES:
                raise
            logger.warning("Retrying %s toggle after lock conflict: %s", model.__tablename__, exc.orig)


async def _flip(db: AsyncSession, model, where, key: dict) -> tuple[RelationState, Optional[object]]:
    removed = await db.execute(
        delete(model).where(where).execution_options(synchronize_session=False)
    )
    if removed.rowcount:
        return RelationState.OFF, None

    record = model(**key)
    db.add(record)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent toggle inserted the same relation first
        await db.rollback()
        await db.execute(
            delete(model).where(where).execution_options(synchronize_session=False)
        )
        await db.flush()
        return RelationState.OFF, None

    await db.refresh(record)
    return RelationState.ON, record


async def toggle_like(
    db: AsyncSession,
    actor_id: uuid.UUID,
    content_type: LikeTarget,
    content_id: uuid.UUID,
) -> tuple[RelationState, Optional[Like]]:
    with tracer.start_as_current_span("toggle_like") as span:
        span.set_attribute("like.content_type", content_type.value)
        span.set_attribute("like.content_id", str(content_id))

        target = await db.get(LIKE_TARGET_MODELS[content_type], content_id)
        if target is None:
            raise NotFound(f"{content_type.value.capitalize()} not found")

        state, record = await toggle_relation(
            db, Like, liked_by=actor_id, content_type=content_type, content_id=content_id
        )
        RELATION_TOGGLES_TOTAL.labels(relation="like", state=state.value).inc()
        logger.info("User %s %s %s %s", actor_id,
                    "liked" if state is RelationState.ON else "unliked",
                    content_type.value, content_id)
        return state, record


async def toggle_subscription(
    db: AsyncSession,
    subscriber_id: uuid.UUID,
    channel_id: uuid.UUID,
) -> tuple[RelationState, Optional[Subscription]]:
    with tracer.start_as_current_span("toggle_subscription") as span:
        span.set_attribute("subscription.channel_id", str(channel_id))

        if subscriber_id == channel_id:
            raise InvalidArgument("Cannot subscribe to your own channel")
        if await db.get(User, channel_id) is None:
            raise NotFound("Channel not found")

        state, record = await toggle_relation(
            db, Subscription, subscriber_id=subscriber_id, channel_id=channel_id
        )
        RELATION_TOGGLES_TOTAL.labels(relation="subscription", state=state.value).inc()
        logger.info("User %s %s channel %s", subscriber_id,
                    "subscribed to" if state is RelationState.ON else "unsubscribed from",
                    channel_id)
        return state, record
