"""ElevenLabs text-to-speech generation and history."""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver, get_materializer
from avatarlab.auth.security import require_user
from avatarlab.db.models import AssetStatus, ServiceName, TtsGeneration
from avatarlab.db.session import get_db
from avatarlab.errors import ValidationError
from avatarlab.middleware.rate_limit import rate_limit_general, rate_limit_generation
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import TtsGenerationInfo, TtsRequest, record_payload
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.materialize import AssetKind, AssetMaterializer
from avatarlab.services.vendors.elevenlabs import (
    DEFAULT_VOICE_ID,
    ElevenLabsClient,
    build_tts_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Speech"])

HISTORY_LIMIT = 50


@router.get(
    "/generate-tts",
    summary="List TTS generations",
    description="The caller's most recent text-to-speech generations (newest first).",
)
@rate_limit_general()
async def list_tts_generations(
    request: Request,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(TtsGeneration)
        .where(TtsGeneration.user_id == user_id)
        .order_by(TtsGeneration.created_at.desc())
        .limit(HISTORY_LIMIT)
    )
    generations = [record_payload(TtsGenerationInfo, g) for g in result.scalars().all()]
    return success_response({"generations": generations})


@router.post(
    "/generate-tts",
    summary="Generate speech",
    description="Synthesize speech with ElevenLabs and store the audio.",
)
@rate_limit_generation()
async def generate_tts(
    request: Request,
    body: TtsRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    """
    Generate speech.

    - **text**: Text to speak
    - **voiceId**: ElevenLabs voice (defaults to Bella)
    - **settings**: model_id, stability, similarity_boost, style, use_speaker_boost
    """
    if not body.text:
        raise ValidationError("Text is required")

    voice_id = body.voice_id or body.settings.get("voice_id") or DEFAULT_VOICE_ID
    payload = build_tts_payload(body.text, body.settings)

    api_key = await resolver.resolve(db, user_id, ServiceName.ELEVENLABS)
    logger.info(f"Generating TTS ({len(body.text)} chars) with voice {voice_id}")
    audio, content_type = await ElevenLabsClient(http_client, api_key).text_to_speech(
        voice_id, payload
    )
    logger.info(f"TTS audio generated, size: {len(audio)}")

    generation = TtsGeneration(
        user_id=user_id,
        text=body.text,
        voice_id=voice_id,
        model=payload["model_id"],
        settings=payload["voice_settings"],
        status=AssetStatus.PENDING,
    )
    db.add(generation)
    await db.flush()

    # Audio only exists in memory, so a failed upload is an error here
    stored = await materializer.store_bytes(
        user_id, generation.id, audio, content_type, AssetKind.AUDIO
    )
    audio_url = stored.url

    generation.mark_completed(audio_url)
    await db.commit()

    return success_response(
        {
            "generation": {**record_payload(TtsGenerationInfo, generation), "audioUrl": audio_url},
            "message": "TTS audio generated successfully!",
        }
    )
