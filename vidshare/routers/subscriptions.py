"""
Subscription endpoints:
  PATCH /subscriptions/channel/{channel_id}  — subscribe / unsubscribe
  GET   /subscriptions/channel/{channel_id}  — subscribers of a channel
  GET   /subscriptions/user/{subscriber_id}  — channels a user subscribes to
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.database import get_db
from vidshare.models import User
from vidshare.schemas import (
    ApiResponse,
    RelationStatus,
    SubscribedChannelEntry,
    SubscriberEntry,
    respond,
)
from vidshare.security import get_current_user
from vidshare.services import listing
from vidshare.services.relations import RelationState, toggle_subscription

logger = logging.getLogger(__name__)
router = APIRouter()


@router.patch("/channel/{channel_id}", response_model=ApiResponse[RelationStatus])
async def toggle_channel_subscription(
    channel_id: uuid.UUID,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    state, record = await toggle_subscription(db, current_user.id, channel_id)
    result = RelationStatus(
        target_type="channel",
        target_id=channel_id,
        state=state.value,
        created_at=record.created_at if record is not None else None,
    )
    if state is RelationState.ON:
        response.status_code = status.HTTP_201_CREATED
        return respond(result, "Subscribed successfully", 201)
    return respond(result, "Unsubscribed successfully")


@router.get("/channel/{channel_id}", response_model=ApiResponse[list[SubscriberEntry]])
async def get_channel_subscribers(
    channel_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscribers = await listing.channel_subscribers(db, channel_id)
    return respond(subscribers, "Subscribers fetched successfully")


@router.get("/user/{subscriber_id}", response_model=ApiResponse[list[SubscribedChannelEntry]])
async def get_subscribed_channels(
    subscriber_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channels = await listing.subscribed_channels(db, subscriber_id)
    return respond(channels, "Subscribed channels fetched successfully")
