"""
Tweet endpoints:
  POST   /tweets                 — post a tweet on your channel
  GET    /tweets/user/{user_id}  — a user's tweets, newest first
  PATCH  /tweets/{tweet_id}      — edit own tweet
  DELETE /tweets/{tweet_id}      — delete own tweet
"""
import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.database import get_db
from vidshare.errors import InvalidArgument
from vidshare.models import Tweet, User
from vidshare.schemas import ApiResponse, ContentBody, TweetResponse, TweetWithOwner, respond
from vidshare.security import get_current_user
from vidshare.services import listing
from vidshare.services.content import delete_tweet_cascade, get_or_404, get_owned

logger = logging.getLogger(__name__)
router = APIRouter()


def _content(body: ContentBody) -> str:
    content = body.content.strip()
    if not content:
        raise InvalidArgument("Content is required")
    return content


@router.post(
    "",
    response_model=ApiResponse[TweetResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_tweet(
    body: ContentBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet = Tweet(owner_id=current_user.id, content=_content(body))
    db.add(tweet)
    await db.flush()
    await db.refresh(tweet)
    return respond(TweetResponse.model_validate(tweet), "Tweet created successfully", 201)


@router.get("/user/{user_id}", response_model=ApiResponse[list[TweetWithOwner]])
async def get_user_tweets(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_or_404(db, User, user_id)
    tweets = await listing.user_tweets(db, user_id)
    return respond(tweets, "User tweets fetched successfully")


@router.patch("/{tweet_id}", response_model=ApiResponse[TweetResponse])
async def update_tweet(
    tweet_id: uuid.UUID,
    body: ContentBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet = await get_owned(db, Tweet, tweet_id, current_user.id, "update")
    tweet.content = _content(body)
    await db.flush()
    await db.refresh(tweet)
    return respond(TweetResponse.model_validate(tweet), "Tweet updated successfully")


@router.delete("/{tweet_id}", response_model=ApiResponse[dict])
async def delete_tweet(
    tweet_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet = await get_owned(db, Tweet, tweet_id, current_user.id, "delete")
    await delete_tweet_cascade(db, tweet)
    return respond({}, "Tweet deleted successfully")
