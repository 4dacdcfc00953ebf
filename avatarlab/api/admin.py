"""Access token management and platform statistics (admin)."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.auth.security import create_access_token
from avatarlab.config import get_settings
from avatarlab.db.models import AccessToken
from avatarlab.db.session import get_db
from avatarlab.errors import AppError, NotFound
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import AccessTokenCreate, AccessTokenInfo, AccessTokenResponse
from avatarlab.services.asset_service import asset_service

router = APIRouter(prefix="/v1/admin", tags=["Admin"])

settings = get_settings()


def verify_admin_key(x_admin_key: Optional[str] = Header(None)):
    """Verify admin access using a secret key."""
    if not x_admin_key or x_admin_key != settings.secret_key:
        raise AppError("Invalid admin key", status_code=status.HTTP_403_FORBIDDEN)
    return True


@router.post(
    "/access-tokens",
    status_code=status.HTTP_201_CREATED,
    summary="Issue an access token",
    description="Issue a bearer token for a user. Admin only.",
)
async def create_new_access_token(
    request: AccessTokenCreate,
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(verify_admin_key),
):
    """
    Issue a new access token.

    **Important**: The full token is only shown once in this response.
    """
    token_model, full_token = await create_access_token(
        db,
        user_id=request.user_id,
        name=request.name,
        expires_in_days=request.expires_in_days,
    )
    await db.commit()

    issued = AccessTokenResponse(
        id=token_model.id,
        token=full_token,  # Only time this is shown
        token_prefix=token_model.token_prefix,
        user_id=token_model.user_id,
        name=token_model.name,
        created_at=token_model.created_at,
        expires_at=token_model.expires_at,
    )
    return success_response(issued.model_dump(mode="json"), status_code=status.HTTP_201_CREATED)


@router.get(
    "/access-tokens",
    summary="List access tokens",
    description="List issued tokens (without the token values). Admin only.",
)
async def list_access_tokens(
    user_id: Optional[str] = Query(None, description="Only tokens of this user"),
    include_inactive: bool = Query(False, description="Include revoked tokens"),
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(verify_admin_key),
):
    query = select(AccessToken)
    if user_id:
        query = query.where(AccessToken.user_id == user_id)
    if not include_inactive:
        query = query.where(AccessToken.is_active == True)  # noqa: E712

    result = await db.execute(query.order_by(AccessToken.created_at.desc()))
    tokens = [
        AccessTokenInfo.model_validate(t).model_dump(mode="json") for t in result.scalars().all()
    ]
    return success_response({"tokens": tokens})


@router.delete(
    "/access-tokens/{token_id}",
    summary="Revoke an access token",
    description="Deactivate a token (soft delete). Admin only.",
)
async def revoke_access_token(
    token_id: str,
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(verify_admin_key),
):
    result = await db.execute(select(AccessToken).where(AccessToken.id == token_id))
    access_token = result.scalar_one_or_none()

    if not access_token:
        raise NotFound(f"Access token {token_id} not found")

    access_token.is_active = False
    await db.commit()

    return success_response({"message": "Access token revoked"})


@router.get(
    "/stats",
    summary="Platform statistics",
    description="Aggregate counts computed on demand. Admin only.",
)
async def platform_stats(
    db: AsyncSession = Depends(get_db),
    _: bool = Depends(verify_admin_key),
):
    stats = await asset_service.platform_stats(db)
    return success_response({"stats": stats})
