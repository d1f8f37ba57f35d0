"""Video analytics enrichment.

Best-effort augmentation of a result set with per-video metrics fetched from
an external analytics service.  The enricher never raises: every failure is
converted into an EnrichmentResult carrying the untouched input items and an
EnrichmentFailure cause.

The full response is parsed before any item is touched, so a failure leaves
the input exactly as it was.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from src.domain.models.enrichment import EnrichmentResult, VideoMetrics
from src.domain.models.enums import EnrichmentFailure

logger = logging.getLogger(__name__)

VIDEO_TYPE = "video"


class AnalyticsError(RuntimeError):
    """Raised by AnalyticsClient implementations.  cause classifies the failure."""

    def __init__(self, cause: EnrichmentFailure, message: str) -> None:
        super().__init__(message)
        self.cause = cause


class AnalyticsClient(ABC):
    """One request type: a batch of encode ids in, a list of metrics out."""

    @abstractmethod
    async def fetch_video_metrics(self, encode_ids: Sequence[str]) -> list[VideoMetrics]:
        """Return metrics for the given encode ids (any order, possibly a subset)."""


class VideoAnalyticsEnricher:
    def __init__(self, client: AnalyticsClient) -> None:
        self._client = client

    async def enrich(self, items: list[Any]) -> EnrichmentResult:
        """Merge views / view_time into the video items of `items`, in place."""
        videos = [item for item in items if getattr(item, "type", None) == VIDEO_TYPE]
        encode_ids = [video.encode_id for video in videos if getattr(video, "encode_id", None)]
        if not encode_ids:
            return EnrichmentResult(items=items)

        try:
            metrics = await self._client.fetch_video_metrics(encode_ids)
        except AnalyticsError as exc:
            logger.error("Error while adding video analytics stats to the videos: %s", exc)
            return EnrichmentResult(items=items, failure=exc.cause, message=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error while adding video analytics stats")
            return EnrichmentResult(
                items=items, failure=EnrichmentFailure.UNEXPECTED, message=str(exc)
            )

        by_encode_id = {record.encode_id: record for record in metrics}
        enriched = 0
        for video in videos:
            record = by_encode_id.get(video.encode_id)
            if record is None:
                continue
            video.views = record.views
            video.view_time = record.view_time
            enriched += 1

        logger.debug("Enriched %d of %d videos", enriched, len(videos))
        return EnrichmentResult(items=items)
