"""KIE.AI video generation, status polling and manual recovery routes."""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver, get_materializer
from avatarlab.auth.security import require_user
from avatarlab.db.models import ServiceName
from avatarlab.db.session import get_db
from avatarlab.errors import AppError, NotFound, ValidationError
from avatarlab.middleware.rate_limit import rate_limit_general, rate_limit_generation
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import (
    ManualVideoUrlRequest,
    TaskInspectRequest,
    VideoGenerateRequest,
    VideoInfo,
    VideoRefreshRequest,
    record_payload,
)
from avatarlab.services.asset_service import asset_service
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.materialize import AssetKind, AssetMaterializer
from avatarlab.services.vendors.kie import JOB_MODELS, VEO_MODELS, KieAIClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Video"])


@router.post(
    "/generate-video-unified",
    summary="Generate a video",
    description="Start a KIE.AI video task (Veo 3 or a jobs model) and record it as processing.",
)
@rate_limit_generation()
async def generate_video(
    request: Request,
    body: VideoGenerateRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Start a video generation.

    - **prompt**: Scene description
    - **provider**: kie-veo3-fast, kie-veo3-quality, or one of the kie-* job models
    - **inputImage** / **inputImages**: Reference image URLs for image-to-video
    """
    if not body.prompt:
        raise ValidationError("Prompt is required")
    if body.provider not in VEO_MODELS and body.provider not in JOB_MODELS:
        raise ValidationError(f"Unsupported provider: {body.provider}")

    image_urls = list(body.input_images or [])
    if body.input_image:
        image_urls.insert(0, body.input_image)

    api_key = await resolver.resolve(db, user_id, ServiceName.KIE_AI)
    task_id, model = await KieAIClient(http_client, api_key).generate_video(
        body.provider, body.prompt, body.parameters, image_urls or None
    )
    logger.info(f"KIE video task {task_id} started with {model}")

    video = await asset_service.create_video(
        db,
        user_id=user_id,
        provider=body.provider,
        task_id=task_id,
        prompt=body.prompt,
        model=model,
        parameters=body.parameters,
        generation_type="img2vid" if image_urls else "text2vid",
    )
    await db.commit()

    return success_response(
        {
            "taskId": task_id,
            "provider": body.provider,
            "model": model,
            "status": "processing",
            "video": record_payload(VideoInfo, video),
        }
    )


@router.post(
    "/poll-video-status",
    summary="Poll processing videos",
    description="Check the caller's processing KIE.AI videos (oldest first, at most 50).",
)
@rate_limit_general()
async def poll_video_status(
    request: Request,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    videos = [
        v for v in await asset_service.list_processing_videos(db, user_id)
        if v.provider in VEO_MODELS or v.provider in JOB_MODELS
    ]
    logger.info(f"Found {len(videos)} processing videos for user {user_id}")

    updates = []
    if videos:
        api_key = await resolver.resolve(db, user_id, ServiceName.KIE_AI)
        client = KieAIClient(http_client, api_key)

        for video in videos:
            try:
                logger.info(f"Checking status for video {video.id}, task {video.task_id}")
                status = await client.video_status(video.provider, video.task_id)
                if status is None:
                    continue
                await asset_service.apply_video_status(db, video, status, materializer)
                await db.commit()
            except (AppError, httpx.HTTPError) as e:
                logger.error(f"Error processing video {video.id}: {e}")
                continue
            updates.append({"videoId": video.id, "status": status.status})

    return success_response(
        {"processed": len(videos), "updated": len(updates), "updates": updates}
    )


@router.post(
    "/debug-kie-response",
    summary="Inspect KIE.AI status endpoints",
    description="Query the Veo and jobs status endpoints concurrently and return their raw responses.",
)
@rate_limit_general()
async def debug_kie_response(
    request: Request,
    body: TaskInspectRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    if not body.task_id:
        raise ValidationError("Task ID is required")

    api_key = await resolver.resolve(db, user_id, ServiceName.KIE_AI)
    results = await KieAIClient(http_client, api_key).inspect_task(body.task_id)
    for result in results:
        logger.info(f"{result['endpoint']} for task {body.task_id}: {result.get('status')}")

    return success_response(
        {"taskId": body.task_id, "provider": body.provider, "results": results}
    )


@router.post(
    "/manual-set-video-url",
    summary="Set a video URL manually",
    description="Store the given URL for one of the caller's videos and mark it completed.",
)
async def manual_set_video_url(
    body: ManualVideoUrlRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    if not body.video_id:
        raise ValidationError("Video ID is required")
    if not body.video_url:
        raise ValidationError("Video URL is required")

    video = await asset_service.get_video(db, user_id, body.video_id)
    if video is None:
        raise NotFound(f"Video {body.video_id} not found")

    stored = await materializer.materialize(user_id, body.video_url, video.id, AssetKind.VIDEO)
    video.mark_completed(stored.url)
    await db.commit()
    logger.info(f"Video {video.id} set to {stored.url}")

    return success_response(
        {"message": "Video URL set successfully", "video": record_payload(VideoInfo, video)}
    )


@router.post(
    "/manual-update-video",
    summary="Re-check one video",
    description="Query KIE.AI for one of the caller's videos and apply the result to its record.",
)
@rate_limit_general()
async def manual_update_video(
    request: Request,
    body: VideoRefreshRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    """
    Refresh a video's status on demand.

    - **videoId**: The caller's video record
    - **taskId** / **provider**: Override the values stored on the record

    A video KIE.AI still reports as running is left untouched and the
    response carries ``status: "processing"``.
    """
    if not body.video_id:
        raise ValidationError("Video ID is required")

    video = await asset_service.get_video(db, user_id, body.video_id)
    if video is None:
        raise NotFound(f"Video {body.video_id} not found")

    task_id = body.task_id or video.task_id
    provider = body.provider or video.provider
    if not task_id:
        raise ValidationError("Task ID is required")
    if provider not in VEO_MODELS and provider not in JOB_MODELS:
        raise ValidationError(f"Unsupported provider: {provider}")

    api_key = await resolver.resolve(db, user_id, ServiceName.KIE_AI)
    logger.info(f"Manual status update for video {video.id}, task {task_id} ({provider})")
    status = await KieAIClient(http_client, api_key).video_status(provider, task_id)

    if status is None:
        logger.info(f"Video {video.id} is still processing")
        return success_response(
            {
                "status": "processing",
                "message": "Video is still processing",
                "video": record_payload(VideoInfo, video),
            }
        )

    await asset_service.apply_video_status(db, video, status, materializer)
    await db.commit()
    logger.info(f"Video {video.id} updated to {status.status}")

    return success_response(
        {
            "status": status.status,
            "message": "Video status updated successfully",
            "video": record_payload(VideoInfo, video),
        }
    )
