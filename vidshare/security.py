"""
Authentication & credentials.

  • Password hashing      — passlib CryptContext (bcrypt)
  • Access credential     — short-lived HS256 JWT, cookie ``accessToken`` or
                            ``Authorization: Bearer``
  • Refresh credential    — long-lived JWT; only the value stored on the user
                            row is accepted, so issuing a new one supersedes
                            the previous one
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request, Response
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from vidshare.config import settings
from vidshare.database import get_db
from vidshare.errors import Unauthenticated
from vidshare.models import User
from vidshare.schemas import TokenPair

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(claims: dict, secret: str, expires_in: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": now,
        "exp": now + expires_in,
        # Unique per token, so two tokens minted in the same second differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    return _encode(
        {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "full_name": user.full_name,
            "type": "access",
        },
        settings.access_token_secret,
        timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(user: User) -> str:
    return _encode(
        {"sub": str(user.id), "type": "refresh"},
        settings.refresh_token_secret,
        timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str, token_type: str = "access") -> uuid.UUID:
    """Verify signature, expiry and type; return the subject's user id."""
    secret = (
        settings.access_token_secret if token_type == "access" else settings.refresh_token_secret
    )
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated(f"{token_type.capitalize()} token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated(f"Invalid {token_type} token")

    if payload.get("type") != token_type:
        raise Unauthenticated(f"Invalid {token_type} token")
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated(f"Invalid {token_type} token")


def _bearer_token(request: Request) -> Optional[str]:
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """FastAPI dependency: resolve the access credential to a stored user."""
    token = _bearer_token(request)
    if not token:
        raise Unauthenticated("Unauthorized request, no token provided")

    user_id = decode_token(token, "access")
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated("Unauthorized request, invalid token")
    return user


async def issue_tokens(db: AsyncSession, user: User) -> TokenPair:
    """Mint an access/refresh pair and persist the refresh token on the user."""
    pair = TokenPair(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(user),
    )
    user.refresh_token = pair.refresh_token
    await db.flush()
    # onupdate expired updated_at; reload it while still inside the session
    await db.refresh(user)
    logger.info("Issued tokens for user %s", user.id)
    return pair


def set_auth_cookies(response: Response, pair: TokenPair) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **options,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=settings.refresh_token_expire_days * 86400,
        **options,
    )


def clear_auth_cookies(response: Response) -> None:
    options = {"httponly": True, "secure": settings.cookie_secure, "samesite": "lax"}
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
