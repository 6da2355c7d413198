"""
Basepack Models

ORM models (database tables):
    from basepack.models.orm import Base, ComponentStateRecord

Pydantic contracts (descriptors, queries, results):
    from basepack.models.contracts import ColumnDescriptor, FilterClause, RecordResult

Enums:
    from basepack.models.enums import AttrType, SortDirection
"""
