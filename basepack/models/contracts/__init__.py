"""
Pydantic contracts exchanged between components, services and the renderer.
"""

from basepack.models.contracts.columns import ColumnDescriptor, ColumnSpec
from basepack.models.contracts.components import ComponentState
from basepack.models.contracts.queries import (
    FilterClause,
    Pagination,
    SearchCondition,
    SortSpec,
)
from basepack.models.contracts.results import DataPage, DeleteResult, RecordResult

__all__ = [
    "ColumnDescriptor",
    "ColumnSpec",
    "ComponentState",
    "DataPage",
    "DeleteResult",
    "FilterClause",
    "Pagination",
    "RecordResult",
    "SearchCondition",
    "SortSpec",
]
