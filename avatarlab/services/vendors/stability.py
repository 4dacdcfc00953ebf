"""Stability AI core image generation."""

import base64

from avatarlab.services.vendors.base import ImageResult, VendorClient


class StabilityClient(VendorClient):
    label = "Stability"
    base_url = "https://api.stability.ai"

    async def generate_image(self, prompt: str, parameters: dict) -> ImageResult:
        form = {"prompt": prompt, "output_format": "png", "aspect_ratio": "1:1"}
        if parameters.get("negative_prompt"):
            form["negative_prompt"] = parameters["negative_prompt"]

        # Multipart body: Stability rejects url-encoded forms
        files = {name: (None, value) for name, value in form.items()}
        response = await self.request_bytes(
            "POST",
            "/v2beta/stable-image/generate/core",
            headers={"Accept": "image/*"},
            files=files,
        )
        encoded = base64.b64encode(response.content).decode("ascii")
        return ImageResult(
            model="stable-diffusion-core",
            status="completed",
            image_url=f"data:image/png;base64,{encoded}",
        )
