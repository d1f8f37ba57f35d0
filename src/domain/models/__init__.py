"""Domain model package.

All domain objects are pure Python / Pydantic models with no ORM or
infrastructure dependencies.  Import from this package to avoid coupling
application code to individual module paths.
"""

from .documents import LIFECYCLE_FIELDS, Document, DriveItem, parse_id
from .enrichment import EnrichmentResult, VideoMetrics, VideoMetricsBatch
from .enums import VISIBLE_STATUSES, EnrichmentFailure, EntityStatus, ResultCode
from .envelope import Result

__all__ = [
    # Documents
    "Document",
    "DriveItem",
    "LIFECYCLE_FIELDS",
    "parse_id",
    # Enums
    "EntityStatus",
    "ResultCode",
    "EnrichmentFailure",
    "VISIBLE_STATUSES",
    # Envelope
    "Result",
    # Enrichment
    "EnrichmentResult",
    "VideoMetrics",
    "VideoMetricsBatch",
]
