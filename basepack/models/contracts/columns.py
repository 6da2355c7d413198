"""
Column contracts.

ColumnSpec is what a component author writes; ColumnDescriptor is the fully
resolved column the builder produces from it.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from basepack.models.enums import AttrType, FilterType

ASSOCIATION_DELIMITER = "__"


class ColumnSpec(BaseModel):
    """
    Column specification as written in component config.

    Unknown keys (width, renderer, flex, ...) are kept as passthrough display
    options.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    read_only: bool | None = None
    editable: bool | None = None
    filterable: bool = True
    hidden: bool | None = None
    label: str | None = None
    getter: Callable[[Any], Any] | None = None
    setter: Callable[[Any, Any], None] | None = None
    sorting_scope: str | None = None
    default_value: Any = None

    @classmethod
    def coerce(cls, value: "str | dict[str, Any] | ColumnSpec") -> "ColumnSpec":
        """Accept a bare attribute name, a dict or a spec."""
        if isinstance(value, ColumnSpec):
            return value
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, dict):
            return cls.model_validate(value)
        raise TypeError(f"Cannot build a column from {value!r}")

    @property
    def is_association(self) -> bool:
        return ASSOCIATION_DELIMITER in self.name

    def display_options(self) -> dict[str, Any]:
        """Passthrough options not interpreted by basepack."""
        return dict(self.model_extra or {})


class ColumnDescriptor(BaseModel):
    """Resolved column. Read-only once built."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    label: str
    label_key: str
    attr_type: AttrType
    filter_type: FilterType | None = None
    filter_options: list[Any] | None = None
    editable: bool
    filterable: bool
    sortable: bool
    hidden: bool = False
    primary_key: bool = False
    nullable: bool = True
    virtual: bool = False
    sorting_scope: str | None = None
    default_value: Any = None

    # Association path: links from the bound entity, then the leaf attribute
    association: tuple[str, ...] = ()
    association_attr: str | None = None
    foreign_key: str | None = None

    getter: Callable[[Any], Any] | None = Field(default=None, exclude=True)
    setter: Callable[[Any, Any], None] | None = Field(default=None, exclude=True)

    @property
    def read_only(self) -> bool:
        return not self.editable

    @property
    def is_association(self) -> bool:
        return bool(self.association)

    def to_public(self) -> dict[str, Any]:
        """Shape handed to the front-end renderer."""
        data = self.model_dump(mode="json", exclude_none=True)
        data["read_only"] = self.read_only
        data.pop("association", None)
        data.pop("association_attr", None)
        return data
