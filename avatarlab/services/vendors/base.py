"""Shared request/response handling for third-party AI vendors."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from avatarlab.errors import InternalError, VendorError

logger = logging.getLogger(__name__)


@dataclass
class ImageResult:
    """Normalized outcome of an image generation request."""

    model: str
    status: str  # "completed" or "processing"
    image_url: Optional[str] = None
    task_id: Optional[str] = None
    progress: Optional[int] = None

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"model": self.model, "status": self.status}
        if self.image_url:
            payload["imageUrl"] = self.image_url
        if self.task_id:
            payload["taskId"] = self.task_id
        if self.progress is not None:
            payload["progress"] = self.progress
        return payload


@dataclass
class VideoStatus:
    """Normalized outcome of a video status check."""

    status: str  # "processing", "completed" or "failed"
    progress: int = 0
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"status": self.status, "progress": self.progress}
        if self.video_url:
            payload["videoUrl"] = self.video_url
        if self.thumbnail_url:
            payload["thumbnail"] = self.thumbnail_url
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.error:
            payload["error"] = self.error
        payload.update(self.extra)
        return payload


def response_data(result: dict) -> dict:
    """The ``data`` object of a vendor envelope, or an empty dict."""
    data = result.get("data")
    return data if isinstance(data, dict) else {}


def extract_error_message(response: httpx.Response, label: str) -> str:
    """Best-effort human-readable message from a vendor error response."""
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return text or f"{label} API error: {response.status_code}"

    message = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
        elif isinstance(error, str):
            message = error
        message = message or body.get("message") or body.get("msg") or body.get("detail")

    if isinstance(message, str) and message:
        return message
    return f"{label} API error: {response.status_code}"


class VendorClient:
    """Base class for one vendor: auth scheme, single-attempt calls, error mapping."""

    label = "Vendor"
    base_url = ""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str):
        self.http = http_client
        self.api_key = api_key

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    async def send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request; network failures become a 500 with the error message."""
        headers = {**self.auth_headers(), **kwargs.pop("headers", {})}
        try:
            return await self.http.request(method, self.url(path), headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.label} request failed: {e}")
            raise InternalError(str(e) or f"{self.label} request failed") from e

    def raise_for_vendor_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = extract_error_message(response, self.label)
        logger.error(f"{self.label} API error: {response.status_code} {message}")
        raise VendorError(message, status_code=response.status_code)

    def parse_object(self, response: httpx.Response) -> dict:
        """Decode a JSON object body; anything else is a bad gateway."""
        try:
            result = response.json()
        except ValueError as e:
            raise VendorError(f"Invalid JSON response from {self.label}") from e
        if not isinstance(result, dict):
            raise VendorError(f"Invalid response from {self.label} API", status_code=502)
        return result

    async def request_json(self, method: str, path: str, **kwargs) -> dict:
        response = await self.send(method, path, **kwargs)
        self.raise_for_vendor_status(response)
        return self.parse_object(response)

    async def request_bytes(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self.send(method, path, **kwargs)
        self.raise_for_vendor_status(response)
        return response
