"""Orchestrates recommendation and per-destination enrichment."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from tourease.agents import DestinationImageAgent, PlaceResolver, RecommenderAgent
from tourease.schemas import (
    Destination,
    EnrichmentSource,
    EnrichmentStrategy,
    PlaceResult,
    PreferenceRequest,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENRICHMENT_TIMEOUT = 20.0


def _log_stage(stage: str, duration: float, prompt_version: str) -> None:
    _LOGGER.info(
        "%s stage completed in %.2fs [prompt_version=%s]",
        stage.capitalize(),
        duration,
        prompt_version,
    )


class EnrichmentPipeline:
    """Turns preferences into a displayable list of destinations.

    Only :class:`tourease.core.llm.OracleUnavailable` escapes; every
    enrichment failure degrades that one destination to "no image".
    """

    def __init__(
        self,
        *,
        recommender: RecommenderAgent,
        resolver: PlaceResolver,
        image_agent: Optional[DestinationImageAgent] = None,
        strategy: EnrichmentStrategy = EnrichmentStrategy.PIPELINE_DRIVEN,
        source: EnrichmentSource = EnrichmentSource.PLACES,
        enrichment_timeout: Optional[float] = DEFAULT_ENRICHMENT_TIMEOUT,
    ) -> None:
        if source is EnrichmentSource.IMAGE_GENERATION and image_agent is None:
            raise ValueError("Image generation enrichment requires an image agent")
        self.recommender = recommender
        self.resolver = resolver
        self.image_agent = image_agent
        self.strategy = strategy
        self.source = source
        self.enrichment_timeout = enrichment_timeout

    async def get_recommendations(self, request: PreferenceRequest) -> List[Destination]:
        pipeline_start = time.perf_counter()
        _LOGGER.info(
            "Starting recommendation pipeline from %s [strategy=%s]",
            request.location,
            self.strategy.value,
        )

        model_driven = self.strategy is EnrichmentStrategy.MODEL_DRIVEN
        start = time.perf_counter()
        destinations = await self.recommender.recommend(
            request,
            resolve_place=self.resolver.resolve if model_driven else None,
        )
        _log_stage("recommender", time.perf_counter() - start, self.recommender.prompt_version)

        if not destinations:
            _LOGGER.info("Recommender returned no destinations")
            return []

        if model_driven:
            enriched = [self._drop_placeholder(destination) for destination in destinations]
        else:
            start = time.perf_counter()
            enriched = await self._enrich_all(destinations)
            _LOGGER.info(
                "Enrichment stage completed in %.2fs [source=%s]",
                time.perf_counter() - start,
                self.source.value,
            )

        _LOGGER.info("Recommendation pipeline completed in %.2fs", time.perf_counter() - pipeline_start)
        return enriched

    async def _enrich_all(self, destinations: List[Destination]) -> List[Destination]:
        results = await asyncio.gather(
            *(self._enrich_one(destination) for destination in destinations),
            return_exceptions=True,
        )
        enriched: List[Destination] = []
        # positional merge keeps the recommender's order whatever finished first
        for destination, result in zip(destinations, results):
            if isinstance(result, BaseException):
                _LOGGER.warning("Enrichment failed for %s: %s", destination.name, result.__class__.__name__)
                enriched.append(destination.without_media())
            else:
                enriched.append(result)
        return enriched

    async def _enrich_one(self, destination: Destination) -> Destination:
        if self.source is EnrichmentSource.IMAGE_GENERATION:
            if self.image_agent is None:
                raise ValueError("Image generation enrichment requires an image agent")
            image_url = await asyncio.wait_for(
                self.image_agent.generate(destination.name, destination.destination_type),
                timeout=self.enrichment_timeout,
            )
            return destination.model_copy(update={"image_url": image_url})

        result: PlaceResult = await asyncio.wait_for(
            self.resolver.resolve(destination.name),
            timeout=self.enrichment_timeout,
        )
        return destination.with_place(result)

    def _drop_placeholder(self, destination: Destination) -> Destination:
        """Strip fallback values the model copied from the tool result."""

        update = {}
        if destination.image_url == self.resolver.placeholder_image_url:
            update["image_url"] = None
        if (destination.latitude, destination.longitude) == tuple(self.resolver.default_coordinates):
            update.update(latitude=None, longitude=None)
        return destination.model_copy(update=update) if update else destination


__all__ = ["EnrichmentPipeline"]
