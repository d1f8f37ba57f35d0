"""SQLAlchemy implementation of DocumentStore over the documents table.

Filters, sorting, pagination, counting and $group/$sum pipelines are compiled
to SQL by sql_query and evaluated by Postgres.  Single-document mutations
target the first match through a `SELECT id ... LIMIT 1 FOR UPDATE` subquery,
so only that row is locked; update_many locks exactly the rows it updates.

Reads select (id, body) columns rather than ORM entities, so rows changed by
UPDATE/DELETE statements are never served stale from the identity map.

Transactions are owned by the caller's session (see get_session()); this
adapter only flushes.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence
from uuid import uuid4

from sqlalchemy import Executable, Result, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.repositories.store import DocumentStore, Filter, Projection, SortSpec, StoreError
from src.infrastructure.persistence.models.documents import DocumentRow
from src.infrastructure.persistence.query import QueryError, project
from src.infrastructure.persistence.sql_query import (
    INSERTION_ORDER,
    as_uuid,
    compile_pipeline,
    order_by,
    to_number,
    update_values,
    where_clause,
)


def _document(row: Any) -> dict[str, Any]:
    return {**row.body, "id": str(row.id)}


class SqlDocumentStore(DocumentStore):
    def __init__(self, session: AsyncSession, collection: str) -> None:
        self._session = session
        self._collection = collection

    async def find_one(self, filter: Filter) -> dict[str, Any] | None:
        result = await self._execute("query", lambda: self._select(filter).limit(1))
        row = result.first()
        return _document(row) if row is not None else None

    async def find_many(
        self,
        filter: Filter,
        skip: int = 0,
        limit: int | None = None,
        sort: SortSpec | None = None,
        projection: Projection | None = None,
    ) -> list[dict[str, Any]]:
        result = await self._execute(
            "query", lambda: self._select(filter, sort).offset(skip or None).limit(limit)
        )
        return [project(_document(row), projection) for row in result.all()]

    async def find_by_id(self, id: str) -> dict[str, Any] | None:
        if as_uuid(id) is None:
            return None
        return await self.find_one({"id": id})

    async def find_one_and_update(
        self, filter: Filter, update: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        result = await self._execute(
            "update",
            lambda: self._returning(
                self._update(DocumentRow.id == self._first_match(filter), update)
            ),
        )
        row = result.first()
        return _document(row) if row is not None else None

    async def update_one(self, filter: Filter, update: Mapping[str, Any]) -> int:
        return 1 if await self.find_one_and_update(filter, update) is not None else 0

    async def update_many(self, filter: Filter, update: Mapping[str, Any]) -> int:
        result = await self._execute(
            "update", lambda: self._update(self._where(filter), update)
        )
        return result.rowcount

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        (stored,) = await self.insert_many([document])
        return stored

    async def insert_many(self, documents: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        rows = [self._new_row(document) for document in documents]
        try:
            self._session.add_all(rows)
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert documents: {exc}") from exc
        return [row.to_document() for row in rows]

    async def find_one_and_delete(self, filter: Filter) -> dict[str, Any] | None:
        result = await self._execute(
            "delete",
            lambda: self._returning(
                delete(DocumentRow).where(DocumentRow.id == self._first_match(filter))
            ),
        )
        row = result.first()
        return _document(row) if row is not None else None

    async def count(self, filter: Filter) -> int:
        result = await self._execute(
            "count",
            lambda: select(func.count()).select_from(DocumentRow).where(self._where(filter)),
        )
        return result.scalar_one()

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        try:
            compiled = compile_pipeline(pipeline, self._scope())
        except QueryError as exc:
            raise StoreError(str(exc)) from exc
        result = await self._execute("aggregate", lambda: compiled.statement)

        if compiled.grouped:
            rows = [
                {key: to_number(value) for key, value in row._mapping.items()}
                for row in result.all()
            ]
        else:
            rows = [_document(row) for row in result.all()]
        for projection in compiled.projections:
            rows = [project(row, projection) for row in rows]
        return rows

    # ------------------------------------------------------------------ #

    def _scope(self):
        return DocumentRow.collection == self._collection

    def _where(self, filter: Filter | None):
        return self._scope() & where_clause(filter)

    def _select(self, filter: Filter, sort: SortSpec | None = None):
        return (
            select(DocumentRow.id, DocumentRow.body)
            .where(self._where(filter))
            .order_by(*order_by(sort), *INSERTION_ORDER)
        )

    def _first_match(self, filter: Filter):
        """Id of the first match, row-locked until the transaction ends."""
        return (
            select(DocumentRow.id)
            .where(self._where(filter))
            .order_by(*INSERTION_ORDER)
            .limit(1)
            .with_for_update()
            .correlate(None)
            .scalar_subquery()
        )

    @staticmethod
    def _update(condition, changes: Mapping[str, Any]):
        return (
            update(DocumentRow)
            .where(condition)
            .values(**update_values(changes))
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _returning(statement):
        return statement.returning(DocumentRow.id, DocumentRow.body).execution_options(
            synchronize_session=False
        )

    async def _execute(self, action: str, build: Callable[[], Executable]) -> Result[Any]:
        try:
            return await self._session.execute(build())
        except QueryError as exc:
            raise StoreError(str(exc)) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to {action} documents: {exc}") from exc

    def _new_row(self, document: Mapping[str, Any]) -> DocumentRow:
        row_id = as_uuid(document.get("id")) if document.get("id") else uuid4()
        if row_id is None:
            raise StoreError(f"invalid document id {document.get('id')!r}")
        body = {**document, "id": str(row_id)}
        return DocumentRow(
            id=row_id,
            collection=self._collection,
            app_id=body.get("app_id"),
            body=body,
        )
