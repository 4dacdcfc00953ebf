"""OpenAI chat completions and DALL-E image generation."""

from avatarlab.errors import VendorError
from avatarlab.services.vendors.base import ImageResult, VendorClient


class OpenAIClient(VendorClient):
    label = "OpenAI"
    base_url = "https://api.openai.com/v1"

    async def chat_completion(self, payload: dict) -> dict:
        """Forward a chat completion request untouched and return the vendor body."""
        return await self.request_json("POST", "/chat/completions", json=payload)

    async def generate_image(self, prompt: str, parameters: dict) -> ImageResult:
        result = await self.request_json(
            "POST",
            "/images/generations",
            json={
                "model": "dall-e-3",
                "prompt": prompt,
                "n": 1,
                "size": f"{parameters.get('width') or 1024}x{parameters.get('height') or 1024}",
                "quality": parameters.get("quality") or "standard",
                "style": parameters.get("style") or "vivid",
            },
        )
        data = result.get("data")
        url = data[0].get("url") if isinstance(data, list) and data and isinstance(data[0], dict) else None
        if not url:
            raise VendorError("Invalid response from OpenAI API - no image URL", status_code=502)
        return ImageResult(model="dall-e-3", status="completed", image_url=url)
