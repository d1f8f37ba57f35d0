"""Analytics enrichment value objects."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import EnrichmentFailure


class VideoMetrics(BaseModel):
    """One record returned by the analytics service.

    Wire keys are the service's own (_id / viewTime); attribute names are ours.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    encode_id: str = Field(alias="_id")
    views: int = 0
    view_time: float = Field(default=0.0, alias="viewTime")


class VideoMetricsBatch(BaseModel):
    """Envelope of the bulk analytics response: {"data": [...]}."""

    data: list[VideoMetrics]


class EnrichmentResult(BaseModel):
    """Outcome of add_video_analytics.

    items is always the caller's original collection (same objects, enriched
    in place on success).  failure is None on success.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    items: list[Any]
    failure: EnrichmentFailure | None = None
    message: str = "success"

    @property
    def is_success(self) -> bool:
        return self.failure is None
