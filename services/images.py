"""
Image provider over an OpenAI-compatible images endpoint.
"""
from typing import Optional

import httpx
import structlog

from schemas.errors import ProviderUnavailable
from services.providers import ImageProvider

logger = structlog.get_logger()

SUPPORTED_DIMENSIONS = ("1024x1024", "1792x1024", "1024x1792")


class HttpImageProvider(ImageProvider):
    """Generates images by POSTing to an images/generations endpoint."""

    name = "http-images"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.openai.com/v1/images/generations",
        model: str = "dall-e-3",
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def generate_image(self, prompt: str, dimensions: str) -> str:
        size = dimensions if dimensions in SUPPORTED_DIMENSIONS else "1024x1024"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": size,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Image request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(
                "Image API error",
                status=response.status_code,
                body=response.text[:200],
            )
            raise ProviderUnavailable(f"Image API returned {response.status_code}")

        data = response.json().get("data") or []
        if not data or not data[0].get("url"):
            raise ProviderUnavailable("Image API returned no url")

        return data[0]["url"]
