"""Synthetic document generation for seeding and test fixtures.

Values are derived from each declared field's annotation using Faker.
Lifecycle fields (id, app_id, status, ...) are never generated; the Resource
attaches them exactly as it does on create.
"""

from __future__ import annotations

import types
import typing
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Literal, Mapping
from uuid import UUID

from faker import Faker

from src.domain.models.documents import Document


class DummyDataFactory:
    def __init__(self, model: type[Document], faker: Faker | None = None) -> None:
        self._model = model
        self._faker = faker or Faker()

    def build(
        self,
        ignored_fields: Iterable[str] = (),
        custom_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return one generated payload.  custom_values win over generated ones."""
        ignored = set(ignored_fields)
        payload: dict[str, Any] = {}
        for name in sorted(self._model.declared_fields()):
            if name in ignored:
                continue
            field = self._model.model_fields[name]
            payload[name] = self._value_for(field.annotation)
        payload.update(custom_values or {})
        return payload

    def build_many(
        self,
        limit: int,
        ignored_fields: Iterable[str] = (),
        custom_values: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        ignored = list(ignored_fields)
        return [self.build(ignored, custom_values) for _ in range(limit)]

    def _value_for(self, annotation: Any) -> Any:
        fake = self._faker
        origin = typing.get_origin(annotation)

        if origin in (typing.Union, types.UnionType):
            # Optional[X] / X | None: generate for the first concrete member
            members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
            return self._value_for(members[0]) if members else None
        if origin is Literal:
            return fake.random_element(typing.get_args(annotation))
        if origin in (list, tuple, set, frozenset) or annotation in (list, tuple, set):
            return []
        if origin is dict or annotation is dict:
            return {}

        if isinstance(annotation, type):
            if issubclass(annotation, Enum):
                return fake.random_element(list(annotation)).value
            if issubclass(annotation, bool):
                return fake.pybool()
            if issubclass(annotation, int):
                return fake.pyint(min_value=0, max_value=10_000)
            if issubclass(annotation, float):
                return fake.pyfloat(min_value=0, max_value=10_000, right_digits=2)
            if issubclass(annotation, datetime):
                return fake.date_time(tzinfo=timezone.utc).isoformat()
            if issubclass(annotation, date):
                return fake.date_object().isoformat()
            if issubclass(annotation, UUID):
                return str(fake.uuid4())
            if issubclass(annotation, str):
                return fake.word()
        return None
