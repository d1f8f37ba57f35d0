"""Domain services: analytics enrichment and synthetic data generation."""

from .analytics import AnalyticsClient, AnalyticsError, VideoAnalyticsEnricher
from .dummy_data import DummyDataFactory

__all__ = [
    "AnalyticsClient",
    "AnalyticsError",
    "VideoAnalyticsEnricher",
    "DummyDataFactory",
]
