"""Process-local DocumentStore for tests, fixtures and local seeding."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Mapping, Sequence
from uuid import uuid4

from src.domain.repositories.store import DocumentStore, Filter, Projection, SortSpec, StoreError
from src.infrastructure.persistence.query import (
    QueryError,
    apply_update,
    matches,
    project,
    run_pipeline,
    sort_documents,
)


class InMemoryDocumentStore(DocumentStore):
    """Documents live in an insertion-ordered dict keyed by id.

    Mutations take an asyncio.Lock so each match-and-mutate request is atomic
    with respect to other coroutines.  Returned documents are deep copies.
    """

    def __init__(self, documents: Sequence[Mapping[str, Any]] = ()) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        for document in documents:
            self._put(document)

    def __len__(self) -> int:
        return len(self._documents)

    async def find_one(self, filter: Filter) -> dict[str, Any] | None:
        for document in self._scan(filter):
            return copy.deepcopy(document)
        return None

    async def find_many(
        self,
        filter: Filter,
        skip: int = 0,
        limit: int | None = None,
        sort: SortSpec | None = None,
        projection: Projection | None = None,
    ) -> list[dict[str, Any]]:
        try:
            selected = sort_documents(self._scan(filter), sort)
        except QueryError as exc:
            raise StoreError(str(exc)) from exc
        end = None if limit is None else skip + limit
        return [project(copy.deepcopy(doc), projection) for doc in selected[skip:end]]

    async def find_by_id(self, id: str) -> dict[str, Any] | None:
        document = self._documents.get(str(id))
        return copy.deepcopy(document) if document is not None else None

    async def find_one_and_update(
        self, filter: Filter, update: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        async with self._lock:
            for document in self._scan(filter):
                updated = self._apply(document, update)
                return copy.deepcopy(updated)
        return None

    async def update_one(self, filter: Filter, update: Mapping[str, Any]) -> int:
        return 1 if await self.find_one_and_update(filter, update) is not None else 0

    async def update_many(self, filter: Filter, update: Mapping[str, Any]) -> int:
        async with self._lock:
            targets = list(self._scan(filter))
            for document in targets:
                self._apply(document, update)
        return len(targets)

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        async with self._lock:
            return copy.deepcopy(self._put(document))

    async def insert_many(self, documents: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(self._put(document)) for document in documents]

    async def find_one_and_delete(self, filter: Filter) -> dict[str, Any] | None:
        async with self._lock:
            for document in self._scan(filter):
                return self._documents.pop(document["id"])
        return None

    async def count(self, filter: Filter) -> int:
        return sum(1 for _ in self._scan(filter))

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        try:
            return run_pipeline(copy.deepcopy(list(self._documents.values())), pipeline)
        except QueryError as exc:
            raise StoreError(str(exc)) from exc

    def _scan(self, filter: Filter):
        try:
            # Materialized so callers may mutate the collection while iterating
            return [doc for doc in self._documents.values() if matches(doc, filter)]
        except QueryError as exc:
            raise StoreError(str(exc)) from exc

    def _put(self, document: Mapping[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(dict(document))
        stored["id"] = str(stored.get("id") or uuid4())
        if stored["id"] in self._documents:
            raise StoreError(f"duplicate id {stored['id']}")
        self._documents[stored["id"]] = stored
        return stored

    def _apply(self, document: dict[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
        try:
            updated = apply_update(document, update)
        except QueryError as exc:
            raise StoreError(str(exc)) from exc
        self._documents[document["id"]] = updated
        return updated
