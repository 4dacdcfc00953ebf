"""HeyGen resource listing, avatar video and video translation routes."""

import logging

import httpx
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver, get_materializer
from avatarlab.auth.security import require_user
from avatarlab.db.models import AssetStatus, ServiceName
from avatarlab.db.session import get_db
from avatarlab.errors import ValidationError
from avatarlab.middleware.rate_limit import rate_limit_general, rate_limit_generation
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import (
    AvatarVideoRequest,
    VideoInfo,
    VideoTranslateRequest,
    record_payload,
)
from avatarlab.services.asset_service import asset_service
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.materialize import AssetMaterializer
from avatarlab.services.vendors.heygen import HeyGenClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["HeyGen"])


@router.api_route(
    "/heygen-list-resources",
    methods=["GET", "POST"],
    summary="List HeyGen avatars or voices",
    description="Avatars are limited to the caller's own (public catalog entries are dropped).",
)
@rate_limit_general()
async def list_resources(
    request: Request,
    resource_type: str = Query(None, alias="type", description='"avatars" or "voices"'),
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    if resource_type not in ("avatars", "voices"):
        raise ValidationError('Invalid resource type. Use "avatars" or "voices"')

    api_key = await resolver.resolve(db, user_id, ServiceName.HEYGEN)
    client = HeyGenClient(http_client, api_key)

    if resource_type == "avatars":
        data = await client.list_avatars()
    else:
        data = await client.list_voices()

    return success_response({"data": data})


@router.post(
    "/heygen-avatar-video",
    summary="Create or check a HeyGen avatar video",
    description="Start a preset-avatar video, or pass checkStatus with videoId to check one.",
)
@rate_limit_generation()
async def avatar_video(
    request: Request,
    body: AvatarVideoRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    """
    Create a HeyGen avatar video.

    - **script**: Text the avatar speaks
    - **voiceId**: HeyGen voice
    - **avatarType**: "preset" (with **avatarId**); "photo" is not supported
    - **dimension**: Output size as "WIDTHxHEIGHT"

    With **checkStatus** and **videoId** the call only reports the video's
    status, completing the caller's matching record once HeyGen is done.
    """
    api_key = await resolver.resolve(db, user_id, ServiceName.HEYGEN)
    client = HeyGenClient(http_client, api_key)

    if body.check_status and body.video_id:
        logger.info(f"Checking HeyGen video status for: {body.video_id}")
        status = await client.video_status(body.video_id)
        payload = status.to_payload()

        video = await asset_service.find_video_by_task(db, user_id, body.video_id)
        if video is not None:
            if video.status == AssetStatus.PROCESSING:
                await asset_service.apply_video_status(db, video, status, materializer)
                await db.commit()
            if video.video_url:
                payload["videoUrl"] = video.video_url
            payload["video"] = record_payload(VideoInfo, video)
        return success_response(payload)

    if not body.script:
        raise ValidationError("Script is required")
    if not body.voice_id:
        raise ValidationError("Voice ID is required")
    if body.avatar_type == "preset" and not body.avatar_id:
        raise ValidationError("Avatar ID is required for preset avatars")
    if body.avatar_type == "photo":
        if not body.photo_avatar:
            raise ValidationError("Photo is required for photo avatars")
        raise ValidationError(
            "Photo avatars are not supported yet. Please select a preset avatar."
        )

    video_id = await client.generate_avatar_video(
        script=body.script,
        voice_id=body.voice_id,
        avatar_id=body.avatar_id,
        avatar_style=body.avatar_style,
        emotion=body.emotion,
        speech_speed=body.speech_speed,
        pitch=body.pitch,
        dimension=body.dimension,
        add_captions=body.add_captions,
    )
    logger.info(f"HeyGen video generation started: {video_id}")

    video = await asset_service.create_video(
        db,
        user_id=user_id,
        provider="heygen",
        task_id=video_id,
        prompt=body.script,
        model=body.avatar_id,
        parameters={
            "voice_id": body.voice_id,
            "avatar_style": body.avatar_style,
            "dimension": body.dimension,
        },
        generation_type="avatar",
    )
    await db.commit()

    return success_response(
        {
            "videoId": video_id,
            "status": "processing",
            "video": record_payload(VideoInfo, video),
        }
    )


@router.post(
    "/heygen-video-translate",
    summary="Translate a video with HeyGen",
    description="Start a translation into one or more languages, or pass checkStatus with translateId.",
)
@rate_limit_generation()
async def video_translate(
    request: Request,
    body: VideoTranslateRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Translate a video.

    - **videoUrl**: Public URL of the source video
    - **targetLanguages**: One or more output languages
    - **speakerNum**: Number of speakers in the video
    - **audioOnly**: Translate the audio track only
    - **dynamicDuration**: Let HeyGen stretch the video to fit the translation
    """
    checking = body.check_status and body.translate_id
    if not checking:
        if not body.video_url:
            raise ValidationError("Video URL is required")
        if not body.target_languages:
            raise ValidationError("At least one target language is required")

    api_key = await resolver.resolve(db, user_id, ServiceName.HEYGEN)
    client = HeyGenClient(http_client, api_key)

    if checking:
        logger.info(f"Checking translation status for: {body.translate_id}")
        status = await client.translation_status(body.translate_id)
        return success_response(status.to_payload())

    translate_id = await client.start_translation(
        video_url=body.video_url,
        target_languages=body.target_languages,
        speaker_num=body.speaker_num,
        audio_only=body.audio_only,
        dynamic_duration=body.dynamic_duration,
    )
    logger.info(f"HeyGen translation started: {translate_id} -> {body.target_languages}")

    return success_response({"translateId": translate_id, "status": "processing"})
