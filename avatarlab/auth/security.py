"""Bearer-token authentication for edge-function routes."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.db.models import AccessToken
from avatarlab.db.session import get_db
from avatarlab.errors import Unauthenticated

logger = logging.getLogger(__name__)

# Token hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_PREFIX = "avl_"
TOKEN_LENGTH = 36


def generate_access_token() -> tuple[str, str]:
    """
    Generate a new access token.
    Returns: (full_token, prefix)
    Format: avl_XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX (32 random hex chars after prefix)
    """
    random_part = secrets.token_hex(16)
    full_token = f"{TOKEN_PREFIX}{random_part}"
    prefix = full_token[:12]  # "avl_" + first 8 chars
    return full_token, prefix


def hash_token(token: str) -> str:
    """Hash a token for storage."""
    return pwd_context.hash(token)


def verify_token(plain_token: str, hashed_token: str) -> bool:
    """Verify a token against its hash."""
    return pwd_context.verify(plain_token, hashed_token)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_access_token_from_db(db: AsyncSession, token: str) -> Optional[AccessToken]:
    """Look up an active, unexpired token by prefix and verify the full value."""
    if not token.startswith(TOKEN_PREFIX) or len(token) != TOKEN_LENGTH:
        return None

    result = await db.execute(
        select(AccessToken).where(
            AccessToken.token_prefix == token[:12],
            AccessToken.is_active == True,  # noqa: E712
        )
    )
    for candidate in result.scalars().all():
        if candidate.expires_at and _as_utc(candidate.expires_at) < datetime.now(timezone.utc):
            continue
        if verify_token(token, candidate.token_hash):
            return candidate

    return None


class AuthenticatedUser:
    """Dependency that turns an ``authorization: Bearer`` header into a user id."""

    async def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(None),
        db: AsyncSession = Depends(get_db),
    ) -> str:
        if not authorization:
            raise Unauthenticated("Missing authorization header")

        token = authorization.replace("Bearer ", "", 1).strip()

        try:
            access_token = await get_access_token_from_db(db, token)
        except Exception as e:
            logger.error(f"Token lookup failed: {e}")
            raise Unauthenticated("Invalid authentication")

        if access_token is None:
            raise Unauthenticated("Invalid authentication")

        # Store in request state for the rate limiter
        request.state.user_id = access_token.user_id
        return access_token.user_id


require_user = AuthenticatedUser()


async def create_access_token(
    db: AsyncSession,
    user_id: str,
    name: str,
    expires_in_days: Optional[int] = None,
) -> tuple[AccessToken, str]:
    """
    Create a new access token for a user.
    Returns: (AccessToken model, full_token_string)
    """
    full_token, prefix = generate_access_token()

    expires_at = None
    if expires_in_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)

    access_token = AccessToken(
        user_id=user_id,
        token_hash=hash_token(full_token),
        token_prefix=prefix,
        name=name,
        expires_at=expires_at,
    )

    db.add(access_token)
    await db.flush()
    await db.refresh(access_token)

    return access_token, full_token
