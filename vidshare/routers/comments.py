"""
Comment endpoints:
  GET    /comments/{video_id}            — paginated comments with author profile
  POST   /comments/{video_id}            — comment on a video
  PATCH  /comments/channel/{comment_id}  — edit own comment
  DELETE /comments/channel/{comment_id}  — delete own comment
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.config import settings
from vidshare.database import get_db
from vidshare.errors import InvalidArgument
from vidshare.models import Comment, User, Video
from vidshare.schemas import ApiResponse, CommentResponse, CommentWithOwner, ContentBody, Page, respond
from vidshare.security import get_current_user
from vidshare.services import listing
from vidshare.services.content import delete_comment_cascade, get_or_404, get_owned

logger = logging.getLogger(__name__)
router = APIRouter()


def _content(body: ContentBody) -> str:
    content = body.content.strip()
    if not content:
        raise InvalidArgument("Comment content is required")
    return content


@router.get("/{video_id}", response_model=ApiResponse[Page[CommentWithOwner]])
async def get_video_comments(
    video_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_or_404(db, Video, video_id)
    comments = await listing.video_comments(db, video_id, listing.PageRequest(page, limit))
    return respond(comments, "Comments fetched successfully")


@router.post(
    "/{video_id}",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    video_id: uuid.UUID,
    body: ContentBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    content = _content(body)
    await get_or_404(db, Video, video_id)

    comment = Comment(owner_id=current_user.id, video_id=video_id, content=content)
    db.add(comment)
    await db.flush()
    await db.refresh(comment)
    return respond(CommentResponse.model_validate(comment), "Comment added successfully", 201)


@router.patch("/channel/{comment_id}", response_model=ApiResponse[CommentResponse])
async def update_comment(
    comment_id: uuid.UUID,
    body: ContentBody,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await get_owned(db, Comment, comment_id, current_user.id, "update")
    comment.content = _content(body)
    await db.flush()
    await db.refresh(comment)
    return respond(CommentResponse.model_validate(comment), "Comment updated successfully")


@router.delete("/channel/{comment_id}", response_model=ApiResponse[dict])
async def delete_comment(
    comment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await get_owned(db, Comment, comment_id, current_user.id, "delete")
    await delete_comment_cascade(db, comment)
    return respond({}, "Comment deleted successfully")
