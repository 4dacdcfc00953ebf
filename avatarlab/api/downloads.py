"""Raw image download passthrough (no auth)."""

import logging

import httpx
from fastapi import APIRouter, Depends, Request, Response

from avatarlab.errors import InternalError, ValidationError
from avatarlab.middleware.rate_limit import rate_limit_general
from avatarlab.responses import CORS_HEADERS
from avatarlab.schemas.schemas import DownloadRequest
from avatarlab.services.http import get_http_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Downloads"])

DEFAULT_FILENAME = "generated-image.png"


@router.post(
    "/download-image",
    summary="Download an image",
    description="Fetch an image URL server-side and return it as an attachment.",
)
@rate_limit_general()
async def download_image(
    request: Request,
    body: DownloadRequest,
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    if not body.image_url:
        raise ValidationError("Image URL is required")

    logger.info(f"Downloading image from: {body.image_url}")
    try:
        upstream = await http_client.get(body.image_url)
    except httpx.HTTPError as e:
        logger.error(f"Download error: {e}")
        raise InternalError("Failed to download image", details=str(e)) from e

    if not upstream.is_success:
        logger.error(f"Failed to fetch image: {upstream.status_code}")
        raise InternalError("Failed to fetch image from provider")

    filename = (body.filename or DEFAULT_FILENAME).replace('"', "")
    return Response(
        content=upstream.content,
        media_type=upstream.headers.get("content-type") or "image/png",
        headers={
            **CORS_HEADERS,
            "Content-Disposition": f'attachment; filename="{filename}"',
        },
    )
