"""
Query contracts: column filters, sorting, pagination and search conditions.
"""

from typing import Any

from pydantic import BaseModel, Field

from basepack.models.enums import FilterComparison, FilterType, SearchOperator, SortDirection


class FilterClause(BaseModel):
    """
    Active filter on one grid column.

    For list filters `value` is a list and its members OR together; clauses
    on different columns AND together.
    """

    field: str
    type: FilterType
    value: Any
    comparison: FilterComparison | None = None


class SortSpec(BaseModel):
    """Sort directive for one column."""

    column: str
    direction: SortDirection = SortDirection.ASC


class Pagination(BaseModel):
    """Zero-based page cursor."""

    page: int = Field(default=0, ge=0)
    per_page: int = Field(default=30, ge=1)

    @property
    def offset(self) -> int:
        return self.page * self.per_page

    @classmethod
    def from_offset(cls, start: int, limit: int) -> "Pagination":
        """Build from a start/limit pair as sent by paging toolbars."""
        limit = max(limit, 1)
        return cls(page=max(start, 0) // limit, per_page=limit)


class SearchCondition(BaseModel):
    """One field/operator/value triple from the search form."""

    field: str
    operator: SearchOperator = SearchOperator.EQ
    value: Any = None
