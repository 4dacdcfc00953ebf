"""Unified image generation across OpenAI, Stability AI, KIE.AI and Gemini."""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from avatarlab.api.deps import get_credential_resolver, get_materializer
from avatarlab.auth.security import require_user
from avatarlab.db.models import AssetStatus, ServiceName
from avatarlab.db.session import get_db
from avatarlab.errors import ValidationError
from avatarlab.middleware.rate_limit import rate_limit_generation
from avatarlab.responses import success_response
from avatarlab.schemas.schemas import ImageGenerateRequest, ImageInfo, record_payload
from avatarlab.services.asset_service import asset_service
from avatarlab.services.credentials import CredentialResolver
from avatarlab.services.http import get_http_client
from avatarlab.services.materialize import AssetKind, AssetMaterializer
from avatarlab.services.vendors.google import GeminiClient
from avatarlab.services.vendors.kie import KieAIClient
from avatarlab.services.vendors.openai import OpenAIClient
from avatarlab.services.vendors.stability import StabilityClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Images"])

IMAGE_PROVIDERS = {
    "openai": (ServiceName.OPENAI, OpenAIClient),
    "stability": (ServiceName.STABILITY, StabilityClient),
    "kie-ai": (ServiceName.KIE_AI, KieAIClient),
    "google": (ServiceName.GOOGLE, GeminiClient),
}


@router.post(
    "/generate-image-unified",
    summary="Generate an image",
    description="Generate with one of: openai, stability, kie-ai, google. "
    "KIE.AI runs asynchronously; poll it with checkProgress and taskId.",
)
@rate_limit_generation()
async def generate_image(
    request: Request,
    body: ImageGenerateRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    resolver: CredentialResolver = Depends(get_credential_resolver),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    materializer: AssetMaterializer = Depends(get_materializer),
):
    """
    Generate an image.

    - **prompt**: What to draw
    - **provider**: openai, stability, kie-ai or google
    - **parameters**: Provider options (width, height, aspect_ratio, negative_prompt, ...)
    - **inputImage**: Source image as a data URL (google only, image-to-image)

    Synchronous providers return a completed image stored in object
    storage. KIE.AI returns a task id; the image record stays pending until
    a **checkProgress** call sees the task finish.
    """
    if body.check_progress and body.task_id:
        return await _check_progress(body, user_id, db, resolver, http_client, materializer)

    if not body.prompt:
        raise ValidationError("Prompt is required")
    if body.provider not in IMAGE_PROVIDERS:
        raise ValidationError(f"Unsupported provider: {body.provider}")

    service, client_class = IMAGE_PROVIDERS[body.provider]
    api_key = await resolver.resolve(db, user_id, service)
    client = client_class(http_client, api_key)

    logger.info(f"Generating image with provider: {body.provider}")
    if body.provider == "google":
        result = await client.generate_image(body.prompt, body.parameters, body.input_image)
    else:
        result = await client.generate_image(body.prompt, body.parameters)

    image = await asset_service.create_image(
        db,
        user_id=user_id,
        prompt=body.prompt,
        provider=body.provider,
        model=result.model,
        parameters=body.parameters,
        task_id=result.task_id,
        input_image_url=body.input_image,
    )

    if result.status == "completed" and result.image_url:
        stored = await materializer.materialize_any(
            user_id, result.image_url, image.id, AssetKind.IMAGE
        )
        image.mark_completed(stored.url)
        result.image_url = stored.url

    await db.commit()
    logger.info(f"Image saved successfully: {image.id}")

    return success_response(
        {
            "provider": body.provider,
            **result.to_payload(),
            "image": record_payload(ImageInfo, image),
        }
    )


async def _check_progress(
    body: ImageGenerateRequest,
    user_id: str,
    db: AsyncSession,
    resolver: CredentialResolver,
    http_client: httpx.AsyncClient,
    materializer: AssetMaterializer,
):
    logger.info(f"Checking progress for task: {body.task_id}")
    if body.provider != "kie-ai":
        return success_response({"status": "processing", "progress": 50})

    api_key = await resolver.resolve(db, user_id, ServiceName.KIE_AI)
    result = await KieAIClient(http_client, api_key).image_progress(body.task_id)

    if result.status == "completed" and result.image_url:
        image = await asset_service.find_image_by_task(db, user_id, body.task_id)
        if image is not None and image.status != AssetStatus.COMPLETED:
            stored = await materializer.materialize(
                user_id, result.image_url, image.id, AssetKind.IMAGE
            )
            image.mark_completed(stored.url)
            await db.commit()
        if image is not None and image.image_url:
            result.image_url = image.image_url

    return success_response(result.to_payload())
