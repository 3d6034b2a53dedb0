"""Agent that produces a picture for a destination with the image model."""

from __future__ import annotations

import logging
import time
from typing import Optional

from tourease.core.images import ImageClient, ImageGenerationError
from tourease.schemas import Destination

_LOGGER = logging.getLogger(__name__)


class DestinationImageAgent:
    """Generates a realistic photo of a destination from its name and type."""

    prompt_version = "destination_image.v1"

    def __init__(self, *, client: Optional[ImageClient] = None, region: str = "Indonesia") -> None:
        self.client = client or ImageClient()
        self.region = region

    def build_prompt(self, name: str, destination_type: str) -> str:
        prompt = (
            "A beautiful, high-quality, realistic photo of the tourist destination: "
            f"{name}, {self.region}."
        )
        if destination_type:
            prompt += f" Type: {destination_type}."
        return prompt

    async def generate(self, name: str, destination_type: str = "") -> str:
        """Return an image URL; raises :class:`ImageGenerationError` naming the destination."""

        start = time.perf_counter()
        try:
            url = await self.client.generate(self.build_prompt(name, destination_type))
        except ImageGenerationError as exc:
            raise ImageGenerationError(
                f"Image generation failed for {name}: {exc}",
                user_message=f"Could not create an image for {name}.",
            ) from exc
        _LOGGER.info(
            "Generated image for %s in %.2fs [prompt_version=%s]",
            name,
            time.perf_counter() - start,
            self.prompt_version,
        )
        return url

    async def image_for(self, destination: Destination) -> Optional[str]:
        return await self.generate(destination.name, destination.destination_type)


__all__ = ["DestinationImageAgent"]
