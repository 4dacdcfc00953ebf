"""HeyGen avatar, voice, avatar-video and video translation endpoints."""

import logging
from typing import Any, Optional

from avatarlab.errors import VendorError
from avatarlab.services.vendors.base import VendorClient, VideoStatus, response_data

logger = logging.getLogger(__name__)


def is_personal_avatar(avatar: dict) -> bool:
    """
    Keep avatars the user owns, drop HeyGen's public catalog.

    When ``is_public_avatar`` is present only an explicit ``False`` keeps
    the avatar, so a null flag counts as public. Without the flag only
    avatars marked custom or talking-photo are kept.
    """
    if "is_public_avatar" in avatar:
        return avatar["is_public_avatar"] is False
    if avatar.get("is_custom") is True or avatar.get("is_talking_photo") is True:
        return True
    return False


def parse_dimension(dimension: Optional[str]) -> tuple[int, int]:
    try:
        width, height = (int(part) for part in (dimension or "").lower().split("x"))
    except ValueError:
        return 1920, 1080
    return width, height


class HeyGenClient(VendorClient):
    label = "HeyGen"
    base_url = "https://api.heygen.com"

    def auth_headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key}

    async def list_avatars(self) -> list[dict]:
        result = await self.request_json("GET", "/v2/avatars")
        all_avatars = response_data(result).get("avatars") or []
        avatars = [a for a in all_avatars if isinstance(a, dict) and is_personal_avatar(a)]
        logger.info(
            f"HeyGen avatars: {len(avatars)} personal of {len(all_avatars)} "
            f"({len(all_avatars) - len(avatars)} public filtered out)"
        )
        return avatars

    async def list_voices(self) -> list[dict]:
        result = await self.request_json("GET", "/v2/voices")
        return response_data(result).get("voices") or []

    async def generate_avatar_video(
        self,
        script: str,
        voice_id: str,
        avatar_id: str,
        avatar_style: str = "normal",
        emotion: Optional[str] = None,
        speech_speed: float = 1.0,
        pitch: float = 0,
        dimension: str = "1920x1080",
        add_captions: bool = False,
    ) -> str:
        """Start a preset-avatar video. Returns HeyGen's video id."""
        voice: dict[str, Any] = {"type": "text", "input_text": script, "voice_id": voice_id}
        if speech_speed and speech_speed != 1.0:
            voice["speed"] = speech_speed
        if pitch:
            voice["pitch"] = pitch
        if emotion:
            voice["emotion"] = emotion

        width, height = parse_dimension(dimension)
        body: dict[str, Any] = {
            "video_inputs": [
                {
                    "character": {
                        "type": "avatar",
                        "avatar_id": avatar_id,
                        "avatar_style": avatar_style or "normal",
                    },
                    "voice": voice,
                }
            ],
            "dimension": {"width": width, "height": height},
            "test": False,
        }
        if add_captions:
            body["caption"] = True

        result = await self.request_json("POST", "/v2/video/generate", json=body)
        video_id = response_data(result).get("video_id")
        if not video_id:
            raise VendorError("Invalid response from HeyGen API - no video_id", status_code=502)
        return video_id

    async def video_status(self, video_id: str) -> VideoStatus:
        response = await self.send(
            "GET", "/v1/video_status.get", params={"video_id": video_id}
        )
        # Freshly created videos can 404 for a short while
        if response.status_code == 404:
            return VideoStatus(status="processing", progress=10)
        self.raise_for_vendor_status(response)

        data = response_data(self.parse_object(response))
        status = data.get("status") or "processing"

        if status == "completed":
            return VideoStatus(
                status="completed",
                progress=100,
                video_url=data.get("video_url"),
                thumbnail_url=data.get("thumbnail_url"),
                duration=data.get("duration"),
            )
        if status in ("failed", "error"):
            error = data.get("error")
            if isinstance(error, dict):
                error = error.get("message") or error.get("detail")
            return VideoStatus(status="failed", error=error or "Video generation failed")

        progress = {"processing": 60, "pending": 20}.get(status, 30)
        return VideoStatus(status="processing", progress=progress)

    async def start_translation(
        self,
        video_url: str,
        target_languages: list[str],
        speaker_num: int = 1,
        audio_only: bool = False,
        dynamic_duration: Optional[bool] = True,
    ) -> str:
        """Start translating a video. Returns HeyGen's translation id."""
        body: dict[str, Any] = {"video_url": video_url}
        if len(target_languages) > 1:
            body["output_languages"] = target_languages
        else:
            body["output_language"] = target_languages[0]
        if audio_only:
            body["translate_audio_only"] = True
        if speaker_num and speaker_num > 1:
            body["speaker_num"] = speaker_num
        if dynamic_duration is not None:
            body["enable_dynamic_duration"] = dynamic_duration

        result = await self.request_json("POST", "/v2/video_translate", json=body)
        translate_id = response_data(result).get("video_translate_id")
        if not translate_id:
            raise VendorError(
                "Invalid response from HeyGen API - no video_translate_id", status_code=502
            )
        return translate_id

    async def translation_status(self, translate_id: str) -> VideoStatus:
        response = await self.send("GET", f"/v1/video_translate/{translate_id}")
        # Not visible until HeyGen has registered the job
        if response.status_code == 404:
            return VideoStatus(status="processing", progress=10)
        self.raise_for_vendor_status(response)

        data = response_data(self.parse_object(response))
        status = data.get("status") or "processing"

        if status == "completed":
            return VideoStatus(
                status="completed",
                progress=100,
                video_url=data.get("video_url"),
                duration=data.get("duration"),
            )
        if status in ("failed", "error"):
            error = data.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            return VideoStatus(status="failed", error=error or "Translation failed")

        progress = {"processing": 50, "pending": 20}.get(status, 30)
        return VideoStatus(status="processing", progress=progress)
