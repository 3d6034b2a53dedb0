"""Workflow entry points for orchestrating TourEase agents."""

from .recommendation_pipeline import EnrichmentPipeline

__all__ = ["EnrichmentPipeline"]
