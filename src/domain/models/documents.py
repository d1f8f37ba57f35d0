"""Stored document models.

Document carries the lifecycle fields every entity shares; concrete entity
types subclass it and declare their own fields.  The declared (entity-specific)
fields form the whitelist used by partial updates.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .enums import EntityStatus, VISIBLE_STATUSES

# Keys owned by the repository.  Callers can never write these through
# create/update/set_field payloads.
LIFECYCLE_FIELDS: frozenset[str] = frozenset(
    {"id", "app_id", "status", "deleted_root", "reported"}
)


def parse_id(value: Any) -> str | None:
    """Return the canonical string form of a UUID identifier, or None if malformed."""
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str):
        return None
    try:
        return str(UUID(value))
    except ValueError:
        return None


class Document(BaseModel):
    """Base shape of every stored entity.

    extra="allow" keeps undeclared stored keys (and enrichment metrics) on the
    model instead of silently discarding them.
    """

    model_config = ConfigDict(extra="allow")

    id: UUID | None = None
    app_id: str | None = None
    status: EntityStatus = EntityStatus.ACTIVE
    deleted_root: bool = False
    encode_id: str | None = None
    reported: bool = False

    @property
    def is_visible(self) -> bool:
        return self.status in VISIBLE_STATUSES

    @classmethod
    def declared_fields(cls) -> frozenset[str]:
        """Entity-specific field names: everything the subclass adds to Document."""
        return frozenset(cls.model_fields) - frozenset(Document.model_fields)


class DriveItem(Document):
    """A file, folder or video stored in an app's drive.

    views / view_time are populated by analytics enrichment and are not
    persisted by the analytics flow itself.
    """

    name: str
    type: str = "file"  # file / folder / video
    size: int = Field(default=0, ge=0)
    parent_id: str | None = None
    views: int | None = None
    view_time: float | None = None
