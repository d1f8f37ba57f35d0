"""Generic document repository.

Resource[T] sits between request handlers and a DocumentStore.  Every public
operation resolves to a Result envelope; StoreError, validation failures and
malformed identifiers are converted at the call site and never raised.

Scope and visibility:
  - A Resource is bound to one app_id (or None for unscoped data).  Reads and
    writes are restricted to that scope, except the by-id status primitives
    (activate / deactivate / soft delete), hard delete, report, and
    get_by_id(..., scoped=False).
  - Default reads only see INACTIVE and ACTIVE documents.  Caller filters are
    AND-ed with the scope/visibility predicate, so they can narrow it but never
    widen it.  Reading DELETED documents requires an explicit `statuses=`.

Status lifecycle: INACTIVE <-> ACTIVE are reversible; soft delete sets
deleted_root and then moves status to DELETED, which nothing leaves.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Iterable, Mapping, Sequence, TypeVar

from pydantic import ValidationError

from src.domain.models.documents import LIFECYCLE_FIELDS, Document, parse_id
from src.domain.models.enrichment import EnrichmentResult
from src.domain.models.enums import EnrichmentFailure, EntityStatus, VISIBLE_STATUSES
from src.domain.models.envelope import Result
from src.domain.services.analytics import VideoAnalyticsEnricher
from src.domain.services.dummy_data import DummyDataFactory
from src.domain.validators import NoopValidator, Validator

from .store import DocumentStore, Filter, SortSpec, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Document)

INVALID_ID = "invalid id"
INVALID_ENCODE_ID = "invalid encode id"
ID_NOT_FOUND = "id does not exist"

_STATUS_MESSAGES = {
    EntityStatus.INACTIVE: "deactivated",
    EntityStatus.ACTIVE: "activated",
    EntityStatus.DELETED: "deleted",
}


class Resource(Generic[T]):
    """CRUD, lifecycle and aggregate operations for one entity type in one scope."""

    def __init__(
        self,
        store: DocumentStore,
        model: type[T],
        app_id: str | None = None,
        validator: Validator | None = None,
        fields: Iterable[str] | None = None,
        enricher: VideoAnalyticsEnricher | None = None,
        dummy_factory: DummyDataFactory | None = None,
    ) -> None:
        self._store = store
        self._model = model
        self._app_id = app_id
        self._validator = validator or NoopValidator()
        self._enricher = enricher
        self._dummy_factory = dummy_factory
        # Partial-update whitelist, fixed for the lifetime of the instance.
        declared = frozenset(fields) if fields is not None else model.declared_fields()
        self._fields = declared - LIFECYCLE_FIELDS

    @property
    def app_id(self) -> str | None:
        return self._app_id

    @property
    def resource_name(self) -> str:
        return self._model.__name__.lower()

    def get_resource_fields(self) -> list[str]:
        """Return the whitelisted (updatable) field names, sorted."""
        return sorted(self._fields)

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    async def create(self, payload: Mapping[str, Any]) -> Result:
        value, error = self._validator.validate(payload)
        if error is not None:
            logger.debug("%s create rejected: %s", self.resource_name, error)
            return Result.bad_request(error)

        document = self._new_document(value)
        try:
            stored = await self._store.insert_one(document)
        except StoreError as exc:
            return self._store_failure("create", exc)
        return Result.created("created", self._to_entity(stored))

    async def update(self, payload: Mapping[str, Any], id: Any) -> Result:
        """Validate and apply payload to the in-scope document with this id.

        A missing document is a failure, never an insert.
        """
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)

        value, error = self._validator.validate(payload, partial=True)
        if error is not None:
            logger.debug("%s update rejected: %s", self.resource_name, error)
            return Result.bad_request(error)

        try:
            stored = await self._store.find_one_and_update(
                self._scoped({"id": doc_id}), {"$set": _strip_lifecycle(value)}
            )
        except StoreError as exc:
            return self._store_failure("update", exc)
        if stored is None:
            return Result.bad_request(ID_NOT_FOUND)
        return Result.created("updated", self._to_entity(stored))

    async def update_many(self, filter: Filter, payload: Mapping[str, Any]) -> Result:
        """Apply a validated payload to every visible, in-scope match of filter."""
        value, error = self._validator.validate(payload, partial=True)
        if error is not None:
            return Result.bad_request(error)

        try:
            matched = await self._store.update_many(
                self._visible(filter), {"$set": _strip_lifecycle(value)}
            )
        except StoreError as exc:
            return self._store_failure("update_many", exc)
        return Result.created("updated", matched)

    async def delete(self, id: Any, hard: bool = False) -> Result:
        """Soft delete (deleted_root, then status DELETED) or hard removal."""
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)

        if hard:
            try:
                removed = await self._store.find_one_and_delete({"id": doc_id})
            except StoreError as exc:
                return self._store_failure("delete", exc)
            if removed is None:
                return Result.bad_request(ID_NOT_FOUND)
            return Result.ok(self._to_entity(removed), message="deleted")

        try:
            matched = await self._store.update_one(
                {"id": doc_id, "status": {"$ne": int(EntityStatus.DELETED)}},
                {"$set": {"deleted_root": True}},
            )
        except StoreError as exc:
            return self._store_failure("delete", exc)
        if not matched:
            return Result.bad_request(ID_NOT_FOUND)
        return await self._change_status(doc_id, EntityStatus.DELETED)

    async def activate(self, id: Any) -> Result:
        return await self._change_status(id, EntityStatus.ACTIVE)

    async def deactivate(self, id: Any) -> Result:
        return await self._change_status(id, EntityStatus.INACTIVE)

    async def report(self, encode_id: str) -> Result:
        """Flag the document with this encode id as reported.  status is untouched."""
        if not isinstance(encode_id, str) or not encode_id.strip():
            return Result.bad_request(INVALID_ENCODE_ID)
        try:
            matched = await self._store.update_one(
                {"encode_id": encode_id}, {"$set": {"reported": True}}
            )
        except StoreError as exc:
            return self._store_failure("report", exc)
        if not matched:
            return Result.bad_request(ID_NOT_FOUND)
        return Result.created("reported")

    async def set_field(self, payload: Mapping[str, Any], id: Any) -> Result:
        """Set whitelisted keys of payload on one document; other keys are dropped."""
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)

        update = {key: val for key, val in payload.items() if key in self._fields}
        dropped = set(payload) - set(update)
        if dropped:
            logger.debug("%s set_field ignored keys %s", self.resource_name, sorted(dropped))

        try:
            stored = await self._store.find_one_and_update(
                self._scoped({"id": doc_id}), {"$set": update}
            )
        except StoreError as exc:
            return self._store_failure("set_field", exc)
        if stored is None:
            return Result.bad_request(ID_NOT_FOUND)
        return Result.created("updated", self._to_entity(stored))

    async def generate_dummy_data(
        self,
        ignored_fields: Iterable[str] = (),
        custom_values: Mapping[str, Any] | None = None,
        limit: int = 10,
    ) -> Result:
        """Bulk-insert `limit` synthetic documents.  Seeding and fixtures only."""
        factory = self._dummy_factory or DummyDataFactory(self._model)
        payloads = factory.build_many(limit, ignored_fields, custom_values)
        documents = [self._new_document(payload, overrides=custom_values) for payload in payloads]
        try:
            stored = await self._store.insert_many(documents)
        except StoreError as exc:
            return self._store_failure("generate_dummy_data", exc)
        return Result.created("created", [self._to_entity(doc) for doc in stored])

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def get_all(self) -> Result:
        try:
            documents = await self._store.find_many(self._visible())
        except StoreError as exc:
            return self._store_failure("get_all", exc)
        return Result.ok([self._to_entity(doc) for doc in documents])

    async def get_by_id(self, id: Any, *, scoped: bool = True) -> Result:
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)
        if scoped:
            return await self.get_by_filter({"id": doc_id})
        return await self._find_one({"$and": [_status_clause(VISIBLE_STATUSES), {"id": doc_id}]})

    async def get_by_filter(
        self, filter: Filter, *, statuses: Sequence[EntityStatus] = VISIBLE_STATUSES
    ) -> Result:
        """Single visible, in-scope document matching filter; data is None when absent."""
        return await self._find_one(self._visible(filter, statuses))

    async def get_all_by_filter(
        self,
        filter: Filter,
        page_size: int,
        page_num: int,
        sort: SortSpec | None = None,
        *,
        statuses: Sequence[EntityStatus] = VISIBLE_STATUSES,
    ) -> Result:
        """One zero-indexed page of visible, in-scope documents matching filter."""
        try:
            documents = await self._store.find_many(
                self._visible(filter, statuses),
                skip=page_num * page_size,
                limit=page_size,
                sort=sort or None,
            )
        except StoreError as exc:
            return self._store_failure("get_all_by_filter", exc)
        return Result.ok([self._to_entity(doc) for doc in documents])

    async def get_by_ids(self, ids: Sequence[Any], fields: Sequence[str] = ()) -> Result:
        """Projected mappings for the visible, in-scope documents among ids."""
        doc_ids = [parse_id(id) for id in ids]
        if any(doc_id is None for doc_id in doc_ids):
            return Result.bad_request(INVALID_ID)
        projection = {field: 1 for field in fields}
        return await self._find_projected({"id": {"$in": doc_ids}}, projection)

    async def get_by_encode_ids(self, ids: Sequence[str], fields: Sequence[str] = ()) -> Result:
        """Projected mappings by encode id; "id" is excluded unless requested."""
        projection = {field: 1 for field in fields}
        if "id" not in fields:
            projection["id"] = 0
        return await self._find_projected({"encode_id": {"$in": list(ids)}}, projection)

    async def get_field(self, id: Any, key: str) -> Result:
        result = await self.get_fields([key], id)
        if not result.is_success:
            return result
        return Result.ok(result.data[key])

    async def get_fields(self, keys: Sequence[str], id: Any) -> Result:
        """Mapping of exactly `keys` read from one in-scope document."""
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)
        try:
            document = await self._store.find_one(self._scoped({"id": doc_id}))
        except StoreError as exc:
            return self._store_failure("get_fields", exc)
        if document is None:
            return Result.bad_request(ID_NOT_FOUND)
        return Result.ok({key: document.get(key) for key in keys})

    # ------------------------------------------------------------------ #
    # Aggregates                                                           #
    # ------------------------------------------------------------------ #

    async def get_count(self, filter: Filter | None = None) -> Result:
        try:
            total = await self._store.count(self._visible(filter))
        except StoreError as exc:
            return self._store_failure("get_count", exc)
        return Result.ok(total)

    async def get_sum_of_field(self, filter: Filter | None, field_name: str) -> Result:
        """Sum of a numeric field over visible, in-scope matches; 0 when none match."""
        pipeline = [
            {"$match": self._visible(filter)},
            {"$group": {"_id": None, "total": {"$sum": f"${field_name}"}}},
        ]
        try:
            groups = await self._store.aggregate(pipeline)
        except StoreError as exc:
            return self._store_failure("get_sum_of_field", exc)
        total = groups[0].get("total") if groups else None
        return Result.ok(total or 0)

    async def exists(self, criteria: Sequence[Filter], excluding_id: Any = None) -> Result:
        """Uniqueness check.  data is True when a conflicting document exists.

        A document matching every criterion conflicts unless it is the document
        identified by excluding_id, so an entity keeping its own value is not a
        conflict with itself.
        """
        excluded = parse_id(excluding_id) if excluding_id is not None else None
        pipeline = [
            {"$match": self._visible({"$and": list(criteria)} if criteria else None)},
            {"$project": {"id": 1}},
        ]
        try:
            matches = await self._store.aggregate(pipeline)
        except StoreError as exc:
            return self._store_failure("exists", exc)
        conflict = any(str(doc.get("id")) != excluded for doc in matches)
        return Result.ok(conflict)

    # ------------------------------------------------------------------ #
    # Enrichment                                                           #
    # ------------------------------------------------------------------ #

    async def add_video_analytics(self, items: list[T]) -> EnrichmentResult:
        """Best-effort merge of video metrics into items.  Never raises."""
        if self._enricher is None:
            return EnrichmentResult(
                items=items,
                failure=EnrichmentFailure.UNCONFIGURED,
                message="video analytics is not configured",
            )
        return await self._enricher.enrich(items)

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def get_success_message(status: EntityStatus | int) -> str:
        try:
            return _STATUS_MESSAGES[EntityStatus(status)]
        except ValueError:
            return ""

    @staticmethod
    def map_order(items: list[Any], order: Sequence[Any], key: str) -> list[Any]:
        """Sort items in place so their `key` values follow `order`; unknown keys go last."""
        positions = {value: index for index, value in enumerate(order)}

        def _position(item: Any) -> int:
            value = item.get(key) if isinstance(item, Mapping) else getattr(item, key, None)
            return positions.get(value, len(positions))

        items.sort(key=_position)
        return items

    async def _change_status(self, id: Any, status: EntityStatus) -> Result:
        """Atomic status transition matched by id only."""
        doc_id = parse_id(id)
        if doc_id is None:
            return Result.bad_request(INVALID_ID)

        # DELETED is terminal: only documents not yet deleted may transition.
        try:
            matched = await self._store.update_one(
                {"id": doc_id, "status": {"$ne": int(EntityStatus.DELETED)}},
                {"$set": {"status": int(status)}},
            )
        except StoreError as exc:
            return self._store_failure("change_status", exc)
        if not matched:
            return Result.bad_request(ID_NOT_FOUND)
        return Result.created(self.get_success_message(status), {"id": doc_id, "status": status})

    async def _find_one(self, filter: Filter) -> Result:
        try:
            document = await self._store.find_one(filter)
        except StoreError as exc:
            return self._store_failure("find_one", exc)
        return Result.ok(self._to_entity(document) if document is not None else None)

    async def _find_projected(self, filter: Filter, projection: Mapping[str, int]) -> Result:
        try:
            documents = await self._store.find_many(
                self._visible(filter), projection=projection or None
            )
        except StoreError as exc:
            return self._store_failure("find_many", exc)
        return Result.ok(documents)

    def _scoped(self, filter: Mapping[str, Any]) -> dict[str, Any]:
        return {**filter, "app_id": self._app_id}

    def _visible(
        self,
        filter: Filter | None = None,
        statuses: Sequence[EntityStatus] = VISIBLE_STATUSES,
    ) -> dict[str, Any]:
        clauses: list[dict[str, Any]] = [_status_clause(statuses), {"app_id": self._app_id}]
        if filter:
            clauses.append(dict(filter))
        return {"$and": clauses}

    def _new_document(
        self, value: Mapping[str, Any], overrides: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        document = _strip_lifecycle(value)
        document.update(
            app_id=self._app_id,
            status=int(EntityStatus.ACTIVE),
            deleted_root=False,
            reported=False,
        )
        status = (overrides or {}).get("status")
        if status in VISIBLE_STATUSES:
            document["status"] = int(status)
        return document

    def _to_entity(self, document: Mapping[str, Any]) -> T:
        try:
            return self._model.model_validate(document)
        except ValidationError as exc:
            # Stored documents written without a model validator may not fit T.
            logger.warning(
                "%s document %s does not match its model: %s",
                self.resource_name,
                document.get("id"),
                exc.error_count(),
            )
            return self._model.model_construct(**document)

    def _store_failure(self, operation: str, exc: StoreError) -> Result:
        logger.warning("%s %s failed: %s", self.resource_name, operation, exc)
        return Result.bad_request(str(exc))


def _strip_lifecycle(value: Mapping[str, Any] | None) -> dict[str, Any]:
    return {key: val for key, val in (value or {}).items() if key not in LIFECYCLE_FIELDS}


def _status_clause(statuses: Sequence[EntityStatus]) -> dict[str, Any]:
    return {"status": {"$in": [int(status) for status in statuses]}}
