"""
Association-aware value access for records.

Reads and writes column values on ORM instances, walking association chains
for compound columns. Missing links read as EMPTY; writes create missing
singular links in memory and leave persistence to the record service.
"""

import logging
from typing import Any

from sqlalchemy.orm.exc import DetachedInstanceError

from basepack.models.contracts.columns import ColumnDescriptor
from basepack.services.entity_metadata import entity_metadata

logger = logging.getLogger(__name__)


class _Empty:
    """Value of an association column whose chain has a missing link."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = _Empty()


def serializable(value: Any) -> Any:
    """EMPTY becomes None for the renderer."""
    return None if value is EMPTY else value


def _read(obj: Any, name: str) -> Any:
    value = getattr(obj, name)
    if callable(value):
        return value()
    return value


def _looks_like_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.isdigit()


def value_for(record: Any, column: ColumnDescriptor, for_display: bool = True) -> Any:
    """
    Value of a column on a record.

    For association columns, `for_display` returns the leaf value (e.g. the
    role's name); otherwise the foreign key of the link (e.g. role_id), which
    is what editors submit back.

    Returns:
        The value, or EMPTY when an association link is absent
    """
    if column.getter is not None:
        return column.getter(record)

    if not column.is_association:
        return _read(record, column.name)

    if not for_display and column.foreign_key is not None:
        return getattr(record, column.foreign_key)

    current = record
    for link in column.association:
        try:
            current = getattr(current, link)
        except DetachedInstanceError:
            logger.debug(f"Detached instance while reading '{column.name}'")
            return EMPTY
        if current is None:
            return EMPTY
    return _read(current, column.association_attr)


def association_values(record: Any, columns: list[ColumnDescriptor]) -> dict[str, Any]:
    """Display values of all association columns, keyed by column name."""
    return {
        column.name: serializable(value_for(record, column, for_display=True))
        for column in columns
        if column.is_association
    }


def set_value_for(record: Any, column: ColumnDescriptor, value: Any) -> None:
    """
    Assign a column value on a record.

    A custom setter takes over completely. Single-link belongs-to columns
    given an id assign the foreign key. Otherwise the chain is walked,
    instantiating missing singular links, and the leaf attribute is set.
    """
    if column.setter is not None:
        column.setter(record, value)
        return

    if not column.is_association:
        setattr(record, column.name, value)
        return

    if column.foreign_key is not None and _looks_like_id(value):
        setattr(record, column.foreign_key, int(value))
        return

    current = record
    for link in column.association:
        linked = getattr(current, link)
        if linked is None:
            association = entity_metadata(type(current)).association(link)
            linked = association.target()
            setattr(current, link, linked)
            logger.debug(f"Instantiated {association.target.__name__} for '{column.name}'")
        current = linked
    setattr(current, column.association_attr, value)
