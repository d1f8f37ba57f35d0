"""HTTP client for the video analytics service (httpx)."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx
from pydantic import ValidationError

from src.domain.models.enrichment import VideoMetrics, VideoMetricsBatch
from src.domain.models.enums import EnrichmentFailure
from src.domain.services.analytics import AnalyticsClient, AnalyticsError
from src.infrastructure.settings import Settings

logger = logging.getLogger(__name__)

BULK_VIDEOS_PATH = "bulkVideosData"


class HttpAnalyticsClient(AnalyticsClient):
    """POSTs {"videos": [...encode ids]} and parses {"data": [{_id, views, viewTime}]}.

    Every call is bounded by `timeout` seconds; a timeout is reported as
    EnrichmentFailure.TIMEOUT, other transport / HTTP status errors as
    TRANSPORT and unparseable bodies as MALFORMED_RESPONSE.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/" + BULK_VIDEOS_PATH
        self._token = token
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpAnalyticsClient:
        return cls(
            base_url=settings.analytics_base_url,
            token=settings.analytics_token,
            timeout=settings.analytics_timeout_seconds,
        )

    async def fetch_video_metrics(self, encode_ids: Sequence[str]) -> list[VideoMetrics]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["authorization"] = self._token

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url, json={"videos": list(encode_ids)}, headers=headers
                )
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise AnalyticsError(
                EnrichmentFailure.TIMEOUT, f"analytics request timed out: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AnalyticsError(
                EnrichmentFailure.TRANSPORT, f"analytics request failed: {exc}"
            ) from exc

        try:
            batch = VideoMetricsBatch.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AnalyticsError(
                EnrichmentFailure.MALFORMED_RESPONSE, f"malformed analytics response: {exc}"
            ) from exc

        logger.debug("Fetched analytics for %d of %d videos", len(batch.data), len(encode_ids))
        return batch.data
