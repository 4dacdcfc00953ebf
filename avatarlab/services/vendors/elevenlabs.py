"""ElevenLabs text-to-speech and professional voice cloning."""

from typing import Optional

from avatarlab.errors import VendorError
from avatarlab.services.vendors.base import VendorClient

DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"  # Bella
DEFAULT_MODEL_ID = "eleven_monolingual_v1"


def build_tts_payload(text: str, settings: dict) -> dict:
    return {
        "text": text,
        "model_id": settings.get("model_id") or DEFAULT_MODEL_ID,
        "voice_settings": {
            "stability": settings.get("stability", 0.5),
            "similarity_boost": settings.get("similarity_boost", 0.75),
            "style": settings.get("style", 0),
            "use_speaker_boost": settings.get("use_speaker_boost", True),
        },
    }


class ElevenLabsClient(VendorClient):
    label = "ElevenLabs"
    base_url = "https://api.elevenlabs.io/v1"

    def auth_headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key}

    async def text_to_speech(self, voice_id: str, payload: dict) -> tuple[bytes, str]:
        """Returns (audio bytes, content type)."""
        response = await self.request_bytes(
            "POST", f"/text-to-speech/{voice_id}", json=payload
        )
        return response.content, response.headers.get("content-type") or "audio/mpeg"

    async def create_pvc_voice(self, name: str, language: str, description: Optional[str]) -> str:
        """Create an empty professional voice clone. Returns its voice id."""
        result = await self.request_json(
            "POST",
            "/voices/pvc",
            json={"name": name, "language": language, "description": description},
        )
        voice_id = result.get("voice_id")
        if not voice_id:
            raise VendorError("No voice_id returned from PVC voice creation", status_code=502)
        return voice_id

    async def upload_pvc_samples(
        self,
        voice_id: str,
        samples: list[tuple[str, bytes]],
        remove_background_noise: Optional[bool] = None,
    ) -> dict:
        """Upload (filename, audio) pairs in one multipart request."""
        data = {}
        if remove_background_noise is not None:
            data["remove_background_noise"] = "true" if remove_background_noise else "false"
        files = [("files", (filename, content)) for filename, content in samples]
        return await self.request_json(
            "POST", f"/voices/pvc/{voice_id}/samples", data=data, files=files
        )

    async def get_voice(self, voice_id: str) -> dict:
        return await self.request_json("GET", f"/voices/{voice_id}")

    async def delete_voice(self, voice_id: str) -> None:
        await self.request_bytes("DELETE", f"/voices/{voice_id}")
