"""Domain enumerations for the resource layer.

EntityStatus and ResultCode are IntEnums so they persist and compare as plain
integers inside stored documents and result envelopes.
EnrichmentFailure uses the str mixin so it serializes cleanly to JSON.
"""

from enum import Enum, IntEnum


class EntityStatus(IntEnum):
    INACTIVE = 0
    ACTIVE = 1
    DELETED = 2

    @property
    def is_visible(self) -> bool:
        """True for statuses included in default reads."""
        return self in VISIBLE_STATUSES


VISIBLE_STATUSES: tuple[EntityStatus, ...] = (EntityStatus.INACTIVE, EntityStatus.ACTIVE)


class ResultCode(IntEnum):
    """Domain result codes.  HTTP-style numbering, not a network status."""

    OK = 200
    CREATED = 201
    BAD_REQUEST = 400


class EnrichmentFailure(str, Enum):
    """Why an analytics enrichment attempt did not apply."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    UNCONFIGURED = "unconfigured"
    UNEXPECTED = "unexpected"
