"""Payload validators supplied to a Resource at construction time.

A validator maps a raw payload to (value, error).  When error is not None the
value must be ignored and the Resource performs no store mutation.

Creates validate the full document, so model defaults are part of the stored
value.  Updates pass partial=True and get back only the keys the caller
supplied, so a partial update never resets untouched fields to defaults.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError


class Validator(ABC):
    """Stateless payload validation capability."""

    @abstractmethod
    def validate(
        self, payload: Mapping[str, Any], partial: bool = False
    ) -> tuple[dict[str, Any] | None, str | None]:
        """Return (normalized value, None) or (None, error message)."""


class NoopValidator(Validator):
    """Identity validator for entities that need no shape checking."""

    def validate(
        self, payload: Mapping[str, Any], partial: bool = False
    ) -> tuple[dict[str, Any] | None, str | None]:
        return dict(payload), None


class ModelValidator(Validator):
    """Validates payloads against a Pydantic model.

    Only fields the model declares are returned.  With partial=True the value
    is further limited to the keys the caller actually supplied.
    """

    def __init__(self, model: type[BaseModel]) -> None:
        self._model = model

    def validate(
        self, payload: Mapping[str, Any], partial: bool = False
    ) -> tuple[dict[str, Any] | None, str | None]:
        try:
            instance = self._model.model_validate(dict(payload))
        except ValidationError as exc:
            return None, _first_error(exc)
        value = instance.model_dump(
            mode="json", exclude_unset=partial, include=set(self._model.model_fields)
        )
        return value, None


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]
