"""Google Gemini image generation (text-to-image and image-to-image)."""

import logging
import re
from typing import Any, Optional

from avatarlab.errors import VendorError
from avatarlab.services.vendors.base import ImageResult, VendorClient, extract_error_message

logger = logging.getLogger(__name__)

GEMINI_MODEL = "gemini-2.5-flash-image"

_INLINE_IMAGE_RE = re.compile(r"^data:(image/[\w.+-]+);base64,")


class GeminiClient(VendorClient):
    label = "Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def auth_headers(self) -> dict[str, str]:
        # Gemini takes the key as a query parameter
        return {}

    async def generate_image(
        self, prompt: str, parameters: dict, input_image: Optional[str] = None
    ) -> ImageResult:
        parts: list[dict[str, Any]] = []
        if input_image:
            match = _INLINE_IMAGE_RE.match(input_image)
            parts.append(
                {
                    "inlineData": {
                        "mimeType": match.group(1) if match else "image/jpeg",
                        "data": _INLINE_IMAGE_RE.sub("", input_image),
                    }
                }
            )
        parts.append({"text": prompt})

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": parameters.get("temperature") or 1,
                "topP": parameters.get("top_p") or 0.95,
                "topK": parameters.get("top_k") or 40,
                "maxOutputTokens": 8192,
                "responseModalities": ["IMAGE"],
            },
        }

        response = await self.send(
            "POST",
            f"/models/{GEMINI_MODEL}:generateContent",
            params={"key": self.api_key},
            json=body,
        )
        if response.status_code == 429:
            raise VendorError(
                "Gemini API quota exceeded. Please check your billing settings at "
                "https://aistudio.google.com/billing",
                status_code=429,
            )
        if response.status_code == 403:
            raise VendorError(
                "Gemini API access forbidden. Please verify your API key has the correct "
                "permissions and billing is enabled.",
                status_code=403,
            )
        if not response.is_success:
            message = extract_error_message(response, self.label)
            raise VendorError(f"Gemini API error: {message}", status_code=response.status_code)

        result = self.parse_object(response)

        candidates = result.get("candidates") or []
        first = candidates[0] if candidates else {}
        for part in (first.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                mime = inline.get("mimeType") or "image/png"
                return ImageResult(
                    model=GEMINI_MODEL,
                    status="completed",
                    image_url=f"data:{mime};base64,{inline['data']}",
                )

        if first.get("finishReason"):
            raise VendorError(f"Gemini blocked the request: {first['finishReason']}", status_code=422)
        raise VendorError("Invalid response from Gemini API - no image data found", status_code=502)
