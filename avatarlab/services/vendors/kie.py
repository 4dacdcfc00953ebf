"""KIE.AI image and video generation plus task status endpoints."""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from avatarlab.errors import ValidationError, VendorError
from avatarlab.services.vendors.base import ImageResult, VendorClient, VideoStatus, response_data

logger = logging.getLogger(__name__)

KIE_BASE_URL = "https://api.kie.ai"

VEO_MODELS = {
    "kie-veo3-fast": "veo3_fast",
    "kie-veo3-quality": "veo3",
}

JOB_MODELS = {
    "kie-sora-2-pro-text2vid": "sora-2-pro-text-to-video",
    "kie-sora-2-pro-img2vid": "sora-2-pro-image-to-video",
    "kie-hailuo-standard-img2vid": "hailuo/2-3-image-to-video-standard",
    "kie-hailuo-pro-img2vid": "hailuo/2-3-image-to-video-pro",
}

_SUCCESS_STATES = {"completed", "success", "SUCCESS"}
_FAILED_STATES = {"failed", "error", "FAILED", "fail"}


def is_veo_provider(provider: Optional[str]) -> bool:
    return provider in VEO_MODELS


def _first_url(value: Any) -> Optional[str]:
    """Vendor URLs arrive as a string, a list, or a JSON-encoded list."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str) and value.startswith("["):
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.error("Could not parse video URL as JSON")
        else:
            value = parsed[0] if isinstance(parsed, list) and parsed else None
    return value or None


def veo_status_from_record(data: dict) -> Optional[VideoStatus]:
    status = data.get("status") or data.get("state")
    if status in _SUCCESS_STATES:
        response = data.get("response") if isinstance(data.get("response"), dict) else {}
        video_url = _first_url(
            data.get("video_url")
            or data.get("videoUrl")
            or data.get("output_video_url")
            or data.get("resultUrls")
            or data.get("result_urls")
            or response.get("resultUrls")
            or data.get("url")
            or data.get("output_url")
        )
        if video_url:
            return VideoStatus(status="completed", progress=100, video_url=video_url)
    elif status in _FAILED_STATES:
        return VideoStatus(
            status="failed",
            error=data.get("error_message")
            or data.get("errorMessage")
            or data.get("failMsg")
            or "Generation failed",
        )
    return None


def job_status_from_record(data: dict) -> Optional[VideoStatus]:
    state = data.get("state")
    if state == "success" and data.get("resultJson"):
        result_json = data["resultJson"]
        try:
            if isinstance(result_json, str):
                result_json = json.loads(result_json)
        except ValueError as e:
            logger.error(f"Failed to parse resultJson: {e}")
            return None
        if not isinstance(result_json, dict):
            return None
        video_url = _first_url(result_json.get("resultUrls") or result_json.get("videoUrl"))
        if video_url:
            return VideoStatus(status="completed", progress=100, video_url=video_url)
    elif state == "fail":
        return VideoStatus(
            status="failed",
            error=data.get("failMsg") or data.get("failCode") or "Generation failed",
        )
    return None


class KieAIClient(VendorClient):
    label = "KIE.AI"
    base_url = KIE_BASE_URL

    def _task_id(self, result: dict) -> str:
        if result.get("code") != 200 or not response_data(result).get("taskId"):
            raise VendorError(
                result.get("msg") or "Invalid response from KIE AI API", status_code=502
            )
        return result["data"]["taskId"]

    async def generate_image(self, prompt: str, parameters: dict) -> ImageResult:
        result = await self.request_json(
            "POST",
            "/api/v1/flux/kontext/generate",
            json={
                "prompt": prompt,
                "aspectRatio": parameters.get("aspect_ratio") or "1:1",
                "model": "flux-kontext-pro",
            },
        )
        return ImageResult(
            model="flux-kontext-pro", status="processing", task_id=self._task_id(result)
        )

    async def image_progress(self, task_id: str) -> ImageResult:
        response = await self.send("GET", f"/api/v1/flux/kontext/{task_id}")
        if not response.is_success:
            return ImageResult(model="flux-kontext-pro", status="processing", progress=50)

        try:
            result = self.parse_object(response)
        except VendorError:
            return ImageResult(model="flux-kontext-pro", status="processing", progress=50)
        data = response_data(result)
        if result.get("code") == 200 and data.get("status") == "completed":
            images = data.get("images") or []
            return ImageResult(
                model="flux-kontext-pro",
                status="completed",
                progress=100,
                image_url=images[0] if images else None,
                task_id=task_id,
            )
        return ImageResult(
            model="flux-kontext-pro",
            status="processing",
            progress=data.get("progress") or 50,
            task_id=task_id,
        )

    async def generate_video(
        self,
        provider: str,
        prompt: str,
        parameters: dict,
        image_urls: Optional[list[str]] = None,
    ) -> tuple[str, str]:
        """Start a video task. Returns (task_id, model)."""
        aspect_ratio = parameters.get("aspect_ratio") or "16:9"

        if provider in VEO_MODELS:
            model = VEO_MODELS[provider]
            body: dict[str, Any] = {"prompt": prompt, "model": model, "aspectRatio": aspect_ratio}
            if image_urls:
                body["imageUrls"] = image_urls
            result = await self.request_json("POST", "/api/v1/veo/generate", json=body)
            return self._task_id(result), model

        if provider in JOB_MODELS:
            model = JOB_MODELS[provider]
            task_input: dict[str, Any] = {"prompt": prompt, "aspect_ratio": aspect_ratio}
            if parameters.get("duration"):
                task_input["duration"] = str(parameters["duration"])
            if image_urls:
                task_input["image_urls"] = image_urls
            result = await self.request_json(
                "POST", "/api/v1/jobs/createTask", json={"model": model, "input": task_input}
            )
            return self._task_id(result), model

        raise ValidationError(f"Unsupported provider: {provider}")

    def veo_status_urls(self, task_id: str) -> list[str]:
        return [
            f"{KIE_BASE_URL}/api/v1/veo/record-info?task_id={task_id}",
            f"{KIE_BASE_URL}/api/v1/veo/tasks/{task_id}",
            f"{KIE_BASE_URL}/api/v1/veo/result/{task_id}",
            f"{KIE_BASE_URL}/api/v1/tasks/{task_id}",
        ]

    def job_status_url(self, task_id: str) -> str:
        return f"{KIE_BASE_URL}/api/v1/jobs/recordInfo?taskId={task_id}"

    async def veo_status(self, task_id: str) -> Optional[VideoStatus]:
        """Try the known Veo status endpoints in order; None while still processing."""
        for url in self.veo_status_urls(task_id):
            try:
                response = await self.http.get(url, headers=self.auth_headers())
                if not response.is_success:
                    logger.info(f"Endpoint {url} returned status {response.status_code}")
                    continue
                result = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Error checking endpoint {url}: {e}")
                continue

            if not isinstance(result, dict):
                logger.error(f"Unexpected body from {url}")
                continue
            if result.get("code") == 200 and isinstance(result.get("data"), dict):
                status = veo_status_from_record(result["data"])
                if status is not None:
                    return status
        return None

    async def job_status(self, task_id: str) -> Optional[VideoStatus]:
        try:
            response = await self.http.get(self.job_status_url(task_id), headers=self.auth_headers())
            if not response.is_success:
                return None
            result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error checking KIE job {task_id}: {e}")
            return None

        if isinstance(result, dict) and result.get("code") == 200 and isinstance(result.get("data"), dict):
            return job_status_from_record(result["data"])
        return None

    async def video_status(self, provider: str, task_id: str) -> Optional[VideoStatus]:
        if is_veo_provider(provider):
            return await self.veo_status(task_id)
        return await self.job_status(task_id)

    async def fetch_raw(self, name: str, url: str) -> dict:
        """Fetch one status endpoint and report exactly what came back."""
        try:
            response = await self.http.get(url, headers=self.auth_headers())
        except httpx.HTTPError as e:
            return {"endpoint": name, "url": url, "error": str(e) or type(e).__name__}

        raw = response.text
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        return {
            "endpoint": name,
            "url": url,
            "status": response.status_code,
            "rawResponse": raw,
            "parsedJson": parsed,
        }

    async def inspect_task(self, task_id: str) -> list[dict]:
        """Query the Veo and jobs status endpoints concurrently."""
        endpoints = [
            ("Veo endpoint", f"{KIE_BASE_URL}/api/v1/veo/record-info?task_id={task_id}"),
            ("Jobs endpoint", self.job_status_url(task_id)),
        ]
        outcomes = await asyncio.gather(
            *(self.fetch_raw(name, url) for name, url in endpoints),
            return_exceptions=True,
        )
        results = []
        for (name, url), outcome in zip(endpoints, outcomes):
            if isinstance(outcome, BaseException):
                results.append({"endpoint": name, "url": url, "error": str(outcome)})
            else:
                results.append(outcome)
        return results
