"""
Result contracts returned by the record service.

Validation and permission failures travel back to the renderer inside these
results rather than as exceptions.
"""

from typing import Any

from pydantic import BaseModel, Field


class RecordResult(BaseModel):
    """Outcome of creating or updating one record."""

    id: Any = None
    success: bool
    record: dict[str, Any] | None = None
    errors: dict[str, list[str]] = Field(default_factory=dict)
    error: str | None = None  # not_found | permission_denied | validation

    @classmethod
    def ok(cls, record_id: Any, record: dict[str, Any] | None = None) -> "RecordResult":
        return cls(id=record_id, success=True, record=record)

    @classmethod
    def failed(
        cls,
        record_id: Any,
        error: str,
        errors: dict[str, list[str]] | None = None,
    ) -> "RecordResult":
        return cls(id=record_id, success=False, error=error, errors=errors or {})


class DeleteResult(BaseModel):
    """Outcome of deleting one record id."""

    id: Any
    success: bool
    error: str | None = None


class DataPage(BaseModel):
    """Rows for a grid plus the total count when paginated."""

    rows: list[dict[str, Any]]
    total: int | None = None
