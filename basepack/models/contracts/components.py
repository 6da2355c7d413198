"""
Component state contracts.
"""

from pydantic import BaseModel, Field

from basepack.models.contracts.queries import FilterClause, SortSpec


class ComponentState(BaseModel):
    """
    Persisted per-user, per-component UI state.

    Written back when the user reorders, resizes, hides or filters columns,
    or changes page. Stored documents from older versions may lack keys, so
    every field has a default.
    """

    columns_order: list[str] | None = None
    column_widths: dict[str, int] = Field(default_factory=dict)
    hidden_columns: list[str] = Field(default_factory=list)
    filters: list[FilterClause] = Field(default_factory=list)
    sort: SortSpec | None = None
    page: int | None = None
