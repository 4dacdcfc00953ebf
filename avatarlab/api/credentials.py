"""Vendor API key management for the signed-in user."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_service
from avatarlab.auth.security import require_user
from avatarlab.db.models import UserApiKey
from avatarlab.db.session import get_db
from avatarlab.errors import NotFound
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import CredentialCreate, CredentialInfo
from avatarlab.services.credentials import CredentialService

router = APIRouter(prefix="/v1/credentials", tags=["Credentials"])


def _credential_payload(credential: UserApiKey) -> dict:
    info = CredentialInfo(
        id=credential.id,
        service=credential.service,
        key_hint=credential.key_hint,
        status=credential.status.value,
        created_at=credential.created_at,
        last_used_at=credential.last_used_at,
    )
    return info.model_dump(mode="json")


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Save a vendor API key",
    description="Store an encoded vendor key; the newest active key per service is the one used.",
)
async def add_credential(
    request: CredentialCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user),
    service: CredentialService = Depends(get_credential_service),
):
    credential = await service.add(db, user_id, request.service, request.api_key)
    await db.commit()
    return success_response(
        {"credential": _credential_payload(credential)},
        status_code=status.HTTP_201_CREATED,
    )


@router.get(
    "",
    summary="List saved API keys",
    description="List the caller's credentials. Secrets are never returned.",
)
async def list_credentials(
    include_revoked: bool = Query(False, description="Include revoked keys"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user),
    service: CredentialService = Depends(get_credential_service),
):
    credentials = await service.list_for_user(db, user_id, include_revoked)
    return success_response({"credentials": [_credential_payload(c) for c in credentials]})


@router.delete(
    "/{credential_id}",
    summary="Revoke an API key",
    description="Mark a credential revoked. Rows are never deleted.",
)
async def revoke_credential(
    credential_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user),
    service: CredentialService = Depends(get_credential_service),
):
    credential = await service.revoke(db, user_id, credential_id)
    if credential is None:
        raise NotFound(f"Credential {credential_id} not found")
    await db.commit()
    return success_response({"credential": _credential_payload(credential)})
