"""ElevenLabs professional voice cloning routes."""

import logging

import httpx
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver
from avatarlab.auth.security import require_user
from avatarlab.db.models import ServiceName, VoiceCloneStatus
from avatarlab.db.session import get_db
from avatarlab.errors import NotFound, ValidationError
from avatarlab.middleware.rate_limit import rate_limit_general, rate_limit_generation
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import VoiceCloneCreate, VoiceCloneInfo, record_payload
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.vendors.elevenlabs import ElevenLabsClient
from avatarlab.services.voice_service import voice_clone_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Voice Cloning"])

CLONE_CREATED_MESSAGE = (
    "Professional Voice Clone created! Samples uploaded. Training will complete in 2-4 hours. "
    "Check your ElevenLabs account for status."
)


@router.get(
    "/clone-voice",
    summary="List voice clones",
    description="The caller's voice clones (newest first); training clones are re-checked at ElevenLabs.",
)
@rate_limit_general()
async def list_voice_clones(
    request: Request,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    clones = await voice_clone_service.list_clones(db, user_id)
    logger.info(f"Found {len(clones)} voice clones for user {user_id}")

    if any(c.status == VoiceCloneStatus.TRAINING for c in clones):
        api_key = await resolver.resolve(db, user_id, ServiceName.ELEVENLABS)
        await voice_clone_service.refresh_training(
            db, clones, ElevenLabsClient(http_client, api_key)
        )
        await db.commit()

    return success_response(
        {"voiceClones": [record_payload(VoiceCloneInfo, c) for c in clones]}
    )


@router.post(
    "/clone-voice",
    summary="Create a voice clone",
    description="Create an ElevenLabs professional voice clone from uploaded recordings.",
)
@rate_limit_generation()
async def create_voice_clone(
    request: Request,
    body: VoiceCloneCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Create a professional voice clone.

    - **name**: Display name of the voice
    - **samples**: Recordings already in storage (url, filename, size, duration)
    - **language**: Voice language (defaults to "en")
    - **remove_background_noise**: Ask ElevenLabs to clean the samples

    Training runs at ElevenLabs afterwards; the clone stays "training"
    until a later listing sees it finished.
    """
    if not body.name or not body.samples:
        raise ValidationError("Name and at least one voice sample are required")

    api_key = await resolver.resolve(db, user_id, ServiceName.ELEVENLABS)
    logger.info(f"Creating voice clone: {body.name} with {len(body.samples)} sample(s)")

    clone = await voice_clone_service.create_clone(
        db,
        user_id,
        ElevenLabsClient(http_client, api_key),
        http_client,
        name=body.name,
        samples=body.samples,
        description=body.description,
        language=body.language,
        remove_background_noise=body.remove_background_noise,
    )
    await db.commit()

    return success_response(
        {
            "voiceClone": {
                **record_payload(VoiceCloneInfo, clone),
                "elevenlabsVoiceId": clone.elevenlabs_voice_id,
            },
            "message": CLONE_CREATED_MESSAGE,
            "isProfessional": True,
            "isTraining": True,
        }
    )


@router.delete(
    "/clone-voice",
    summary="Delete a voice clone",
    description="Remove the voice at ElevenLabs and delete the caller's record.",
)
@rate_limit_general()
async def delete_voice_clone(
    request: Request,
    clone_id: str = Query(None, alias="id", description="Voice clone id"),
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    if not clone_id:
        raise ValidationError("Voice clone ID is required")

    clone = await voice_clone_service.get_clone(db, user_id, clone_id)
    if clone is None:
        raise NotFound("Voice clone not found")

    api_key = await resolver.resolve(db, user_id, ServiceName.ELEVENLABS)
    logger.info(f"Deleting voice clone: {clone_id}")
    await voice_clone_service.delete_clone(db, clone, ElevenLabsClient(http_client, api_key))
    await db.commit()

    return success_response({"message": "Voice clone deleted successfully"})
