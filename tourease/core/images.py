"""Client for the hosted image generation endpoint."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx


DEFAULT_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
DEFAULT_IMAGE_TIMEOUT = float(os.getenv("IMAGE_TIMEOUT", "90"))
DEFAULT_IMAGE_SIZE = "1024x1024"

_LOGGER = logging.getLogger(__name__)


class ImageGenerationError(RuntimeError):
    """Raised when an image could not be produced for a prompt."""

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message or "The image could not be generated."


@dataclass
class ImageClient:
    """Calls an OpenAI compatible ``/images/generations`` endpoint."""

    model: str = DEFAULT_IMAGE_MODEL
    size: str = DEFAULT_IMAGE_SIZE
    timeout: Optional[float] = DEFAULT_IMAGE_TIMEOUT
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

    async def generate(self, prompt: str) -> str:
        """Return a media URL (``https://`` or ``data:``) for the prompt."""

        payload: Dict[str, Any] = {"model": self.model, "prompt": prompt, "n": 1, "size": self.size}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        _LOGGER.debug("Requesting image from model %s", self.model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/images/generations",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise ImageGenerationError(f"Image generation request failed: {exc}") from exc
        return self.extract_url(data)

    @staticmethod
    def extract_url(response: Mapping[str, Any]) -> str:
        """Return the first image URL, converting inline base64 payloads to data URLs."""

        items = response.get("data") or []
        if not items or not isinstance(items[0], dict):
            raise ImageGenerationError("Image response did not contain any media")
        first = items[0]
        url = first.get("url")
        if isinstance(url, str) and url:
            return url
        encoded = first.get("b64_json")
        if isinstance(encoded, str) and encoded:
            return f"data:image/png;base64,{encoded}"
        raise ImageGenerationError("Image response did not contain a media URL")


__all__ = ["ImageClient", "ImageGenerationError"]
