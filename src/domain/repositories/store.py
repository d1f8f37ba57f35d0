"""Document store capability interface.

DocumentStore is the only persistence dependency of Resource.  Concrete
adapters live in src/infrastructure/persistence/stores/ and are wired at the
application boundary.

Design notes:
  - Documents are plain dicts; "id" is the primary key and is assigned by the
    store on insert (canonical UUID string).
  - Filters and updates use the Mongo-style operator subset documented in
    src/infrastructure/persistence/query.py.
  - find_one_and_update / update_one / update_many / find_one_and_delete are
    each a single atomic match-and-mutate request per document.
  - Adapters raise StoreError and nothing else; driver exceptions are wrapped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

Filter = Mapping[str, Any]
SortSpec = Mapping[str, int]
Projection = Mapping[str, int]


class StoreError(RuntimeError):
    """Raised when a document store rejects or fails an operation.

    Wraps lower-level driver exceptions to provide a stable, driver-agnostic API.
    """


class DocumentStore(ABC):
    """Abstract document collection."""

    @abstractmethod
    async def find_one(self, filter: Filter) -> dict[str, Any] | None:
        """Return the first document matching filter, or None."""

    @abstractmethod
    async def find_many(
        self,
        filter: Filter,
        skip: int = 0,
        limit: int | None = None,
        sort: SortSpec | None = None,
        projection: Projection | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching documents, sorted, then skipped, then limited, then projected."""

    @abstractmethod
    async def find_by_id(self, id: str) -> dict[str, Any] | None:
        """Return the document with the given id regardless of any other field."""

    @abstractmethod
    async def find_one_and_update(
        self, filter: Filter, update: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Atomically update the first match and return it post-update.  Never upserts."""

    @abstractmethod
    async def update_one(self, filter: Filter, update: Mapping[str, Any]) -> int:
        """Atomically update the first match.  Returns the matched count (0 or 1)."""

    @abstractmethod
    async def update_many(self, filter: Filter, update: Mapping[str, Any]) -> int:
        """Update every match, each atomically.  Returns the matched count."""

    @abstractmethod
    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a document and return it with its assigned id."""

    @abstractmethod
    async def insert_many(self, documents: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Insert documents in order and return them with their assigned ids."""

    @abstractmethod
    async def find_one_and_delete(self, filter: Filter) -> dict[str, Any] | None:
        """Remove the first match and return it, or None if nothing matched."""

    @abstractmethod
    async def count(self, filter: Filter) -> int:
        """Return the number of matching documents."""

    @abstractmethod
    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline ($match / $group / $sort / $skip / $limit / $project)."""
