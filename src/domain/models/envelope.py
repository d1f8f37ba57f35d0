"""Result envelope returned by every Resource operation.

Callers branch on Result.code / Result.is_success rather than catching
exceptions; store and validation errors never escape the repository.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from .enums import ResultCode


class Result(BaseModel):
    """Immutable {code, message, data} value."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    code: int
    message: str
    data: Any = None

    @property
    def is_success(self) -> bool:
        return self.code < ResultCode.BAD_REQUEST

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> Result:
        return cls(code=ResultCode.OK, message=message, data=data)

    @classmethod
    def created(cls, message: str, data: Any = None) -> Result:
        return cls(code=ResultCode.CREATED, message=message, data=data)

    @classmethod
    def bad_request(cls, message: str) -> Result:
        """Failure variant: code is always 400 and data is always None."""
        return cls(code=ResultCode.BAD_REQUEST, message=message)
