"""Document table ORM model: one row per stored document of any collection."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Index, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class DocumentRow(Base):
    """Stored document.

    body holds the full document (including id and app_id as strings).
    collection and app_id are promoted to indexed columns; every other field
    is queried through JSONB operators on body.
    created_at preserves insertion order for unsorted reads.
    """

    __tablename__ = "documents"
    __table_args__ = (Index("ix_documents_collection_app_id", "collection", "app_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    collection: Mapped[str] = mapped_column(Text, nullable=False)
    app_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_document(self) -> dict[str, Any]:
        return {**self.body, "id": str(self.id)}
