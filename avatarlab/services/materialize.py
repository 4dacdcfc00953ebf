"""Copy generated assets into durable object storage."""

import base64
import binascii
import enum
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional, Union

import httpx
from starlette.concurrency import run_in_threadpool

from avatarlab.config import get_settings
from avatarlab.errors import StorageError
from avatarlab.services.storage import StorageService

logger = logging.getLogger(__name__)

settings = get_settings()

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]*)*?),(?P<data>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
}


class AssetKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"

    @property
    def bucket(self) -> str:
        return {
            AssetKind.IMAGE: settings.images_bucket,
            AssetKind.VIDEO: settings.videos_bucket,
            AssetKind.AUDIO: settings.voice_samples_bucket,
        }[self]

    @property
    def default_content_type(self) -> str:
        return {
            AssetKind.IMAGE: "image/png",
            AssetKind.VIDEO: "video/mp4",
            AssetKind.AUDIO: "audio/mpeg",
        }[self]


@dataclass(frozen=True)
class Stored:
    """The asset now lives in object storage."""

    url: str
    key: str

    @property
    def stored(self) -> bool:
        return True


@dataclass(frozen=True)
class Unstored:
    """Storage was not possible; ``url`` is the original link."""

    url: str
    reason: str

    @property
    def stored(self) -> bool:
        return False


MaterializedAsset = Union[Stored, Unstored]


def is_inline_url(url: Optional[str]) -> bool:
    return bool(url) and url.startswith("data:")


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """
    Split a ``data:`` URL into (content_type, payload bytes).
    Raises ValueError when the URL is not a base64 data URL.
    """
    match = _DATA_URL_RE.match(data_url)
    if not match or ";base64" not in (match.group("params") or ""):
        raise ValueError("Not a base64 data URL")
    try:
        payload = base64.b64decode(match.group("data"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return match.group("mime") or "application/octet-stream", payload


def extension_for(content_type: str, kind: AssetKind) -> str:
    mime = content_type.split(";")[0].strip().lower()
    return _EXTENSIONS.get(mime) or _EXTENSIONS[kind.default_content_type]


class AssetMaterializer:
    """Download or decode an asset and re-upload it under the owner's prefix."""

    def __init__(self, storage: StorageService, http_client: httpx.AsyncClient):
        self.storage = storage
        self.http_client = http_client

    def object_key(self, owner_id: str, local_identifier: str, ext: str) -> str:
        timestamp = int(time.time() * 1000)
        return f"{owner_id}/{local_identifier}_{timestamp}.{ext}"

    async def store_bytes(
        self,
        owner_id: str,
        local_identifier: str,
        content: bytes,
        content_type: str,
        kind: AssetKind,
    ) -> Stored:
        """Upload bytes off the event loop; raises StorageError on failure."""
        key = self.object_key(owner_id, local_identifier, extension_for(content_type, kind))
        # boto3 is blocking
        await run_in_threadpool(self.storage.upload_bytes, kind.bucket, key, content, content_type)
        return Stored(url=self.storage.public_url(kind.bucket, key), key=key)

    async def materialize(
        self,
        owner_id: str,
        remote_url: str,
        local_identifier: str,
        kind: AssetKind = AssetKind.VIDEO,
    ) -> MaterializedAsset:
        """Fetch ``remote_url`` and store it; fall back to the original URL on any failure."""
        logger.info(f"Downloading {kind.value} from: {remote_url}")
        try:
            response = await self.http_client.get(remote_url)
        except httpx.HTTPError as e:
            logger.error(f"Failed to download {kind.value}: {e}")
            return Unstored(url=remote_url, reason=str(e))

        if not response.is_success:
            logger.error(f"Failed to download {kind.value}: {response.status_code}")
            return Unstored(url=remote_url, reason=f"Download returned {response.status_code}")

        content_type = response.headers.get("content-type") or kind.default_content_type
        try:
            stored = await self.store_bytes(
                owner_id, local_identifier, response.content, content_type, kind
            )
        except StorageError as e:
            logger.error(f"Storage upload error: {e}")
            return Unstored(url=remote_url, reason=e.message)

        logger.info(f"{kind.value.capitalize()} stored at: {stored.url}")
        return stored

    async def materialize_inline(
        self,
        owner_id: str,
        data_url: str,
        local_identifier: str,
        kind: AssetKind = AssetKind.IMAGE,
    ) -> MaterializedAsset:
        """Decode a ``data:`` URL and store it; keep the inline URL on failure."""
        try:
            content_type, content = decode_data_url(data_url)
            return await self.store_bytes(owner_id, local_identifier, content, content_type, kind)
        except (ValueError, StorageError) as e:
            reason = e.message if isinstance(e, StorageError) else str(e)
            logger.error(f"Could not store inline {kind.value} {local_identifier}: {reason}")
            return Unstored(url=data_url, reason=reason)

    async def materialize_any(
        self,
        owner_id: str,
        url: str,
        local_identifier: str,
        kind: AssetKind,
    ) -> MaterializedAsset:
        if is_inline_url(url):
            return await self.materialize_inline(owner_id, url, local_identifier, kind)
        return await self.materialize(owner_id, url, local_identifier, kind)
