"""
Account & session endpoints:
  POST  /auth/register          — create an account (multipart, avatar required)
  POST  /auth/login             — exchange username/email + password for tokens
  POST  /auth/logout            — drop the active refresh token
  POST  /auth/refresh-token     — rotate the access/refresh pair
  GET   /auth/me                — current user
  PATCH /auth/password          — change password
  PATCH /auth/account           — change full name / email
  PATCH /auth/avatar            — replace avatar image
  PATCH /auth/cover-image       — replace cover image
  GET   /auth/channel/{username} — channel profile with subscription counts
  GET   /auth/watch-history     — videos the current user has viewed
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from opentelemetry import trace
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.clients.media_store import delete_asset, replace_asset, upload_asset
from vidshare.database import get_db
from vidshare.errors import Conflict, InvalidArgument, NotFound, Unauthenticated, Unauthorized
from vidshare.models import User
from vidshare.schemas import (
    AccountUpdate,
    ApiResponse,
    ChannelProfile,
    LoginRequest,
    LoginResponse,
    PasswordChange,
    RefreshRequest,
    TokenPair,
    UserResponse,
    WatchHistoryItem,
    respond,
)
from vidshare.security import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    decode_token,
    get_current_user,
    hash_password,
    issue_tokens,
    set_auth_cookies,
    verify_password,
)
from vidshare.services import listing

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _user_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    username: str = Form(...),
    email: str = Form(...),
    full_name: str = Form(...),
    password: str = Form(...),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user.

    Uniqueness is checked before anything is uploaded, so a duplicate
    username or email never leaves orphaned images on the media host.
    """
    with tracer.start_as_current_span("register_user"):
        fields = [username, email, full_name, password]
        if any(not field or not field.strip() for field in fields):
            raise InvalidArgument("All fields are required")

        username = username.strip().lower()
        email = email.strip().lower()

        existing = await db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if existing.first():
            raise Conflict("User with this username or email already exists")

        if avatar is None or not avatar.filename:
            raise InvalidArgument("Avatar file is required")

        uploaded_avatar = await upload_asset(avatar, "avatars")
        uploaded_cover = None
        if cover_image is not None and cover_image.filename:
            try:
                uploaded_cover = await upload_asset(cover_image, "covers")
            except Exception:
                await delete_asset(uploaded_avatar.key)
                raise

        user = User(
            username=username,
            email=email,
            full_name=full_name.strip(),
            password_hash=hash_password(password),
            avatar=uploaded_avatar.url,
            avatar_key=uploaded_avatar.key,
            cover_image=uploaded_cover.url if uploaded_cover else None,
            cover_image_key=uploaded_cover.key if uploaded_cover else None,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same name/email
            await db.rollback()
            await delete_asset(uploaded_avatar.key)
            if uploaded_cover:
                await delete_asset(uploaded_cover.key)
            raise Conflict("User with this username or email already exists")
        await db.refresh(user)

        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return respond(_user_response(user), "User registered successfully", 201)


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(body: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    if not body.username and not body.email:
        raise InvalidArgument("Email or username is required")

    conditions = []
    if body.username:
        conditions.append(User.username == body.username.strip().lower())
    if body.email:
        conditions.append(User.email == body.email.strip().lower())
    user = (await db.execute(select(User).where(or_(*conditions)))).scalars().first()
    if user is None:
        raise NotFound("User does not exist")

    if not verify_password(body.password, user.password_hash):
        raise Unauthenticated("Invalid user credentials")

    pair = await issue_tokens(db, user)
    set_auth_cookies(response, pair)
    return respond(
        LoginResponse(user=_user_response(user), **pair.model_dump()),
        "User logged in successfully",
    )


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    current_user.refresh_token = None
    await db.flush()
    clear_auth_cookies(response)
    logger.info("User %s logged out", current_user.id)
    return respond({}, "User logged out successfully")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Rotate credentials. Only the refresh token stored on the user row is
    accepted; once rotated (or after logout) the previous one is rejected.
    """
    incoming = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if not incoming:
        raise Unauthenticated("Unauthorized request, no refresh token provided")

    user_id = decode_token(incoming, "refresh")
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated("Invalid refresh token")
    if user.refresh_token != incoming:
        raise Unauthorized("Refresh token is expired or used")

    pair = await issue_tokens(db, user)
    set_auth_cookies(response, pair)
    return respond(pair, "Access token refreshed")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(current_user: User = Depends(get_current_user)):
    return respond(_user_response(current_user), "Current user fetched successfully")


@router.patch("/password", response_model=ApiResponse[dict])
async def change_password(
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(body.old_password, current_user.password_hash):
        raise InvalidArgument("Invalid old password")
    current_user.password_hash = hash_password(body.new_password)
    await db.flush()
    logger.info("User %s changed password", current_user.id)
    return respond({}, "Password changed successfully")


@router.patch("/account", response_model=ApiResponse[UserResponse])
async def update_account(
    body: AccountUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    email = body.email.strip().lower()
    taken = await db.execute(
        select(User.id).where(User.email == email, User.id != current_user.id)
    )
    if taken.first():
        raise Conflict("Email is already in use")

    current_user.full_name = body.full_name.strip()
    current_user.email = email
    await db.flush()
    await db.refresh(current_user)
    return respond(_user_response(current_user), "Account details updated successfully")


async def _replace_profile_image(
    db: AsyncSession, user: User, upload: UploadFile, folder: str, url_attr: str, key_attr: str
) -> User:
    async def apply(media):
        setattr(user, url_attr, media.url)
        setattr(user, key_attr, media.key)
        await db.commit()

    await replace_asset(upload, folder, getattr(user, key_attr), apply)
    await db.refresh(user)
    return user


@router.patch("/avatar", response_model=ApiResponse[UserResponse])
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if avatar is None or not avatar.filename:
        raise InvalidArgument("Avatar file is required")
    user = await _replace_profile_image(db, current_user, avatar, "avatars", "avatar", "avatar_key")
    return respond(_user_response(user), "Avatar updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[UserResponse])
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if cover_image is None or not cover_image.filename:
        raise InvalidArgument("Cover image file is required")
    user = await _replace_profile_image(
        db, current_user, cover_image, "covers", "cover_image", "cover_image_key"
    )
    return respond(_user_response(user), "Cover image updated successfully")


@router.get("/channel/{username}", response_model=ApiResponse[ChannelProfile])
async def channel_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not username.strip():
        raise InvalidArgument("Username is required")
    profile = await listing.channel_profile(db, username, current_user.id)
    if profile is None:
        raise NotFound("Channel does not exist")
    return respond(profile, "Channel profile fetched successfully")


@router.get("/watch-history", response_model=ApiResponse[list[WatchHistoryItem]])
async def get_watch_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    history = await listing.watch_history(db, current_user.id)
    return respond(history, "Watch history fetched successfully")
