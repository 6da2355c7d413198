"""
Enums shared by contracts, services and components.
"""

from enum import Enum


class AttrType(str, Enum):
    """Semantic type of an entity attribute."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    UUID = "uuid"
    ENUM = "enum"
    JSON = "json"
    VIRTUAL = "virtual"  # property or method, no column behind it


class FilterType(str, Enum):
    """Column filter flavour offered to the front end."""

    STRING = "string"
    NUMERIC = "numeric"
    DATE = "date"
    BOOLEAN = "boolean"
    LIST = "list"


class Cardinality(str, Enum):
    """Association cardinality."""

    BELONGS_TO = "belongs_to"  # many-to-one
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    MANY_TO_MANY = "many_to_many"

    @property
    def is_singular(self) -> bool:
        return self in (Cardinality.BELONGS_TO, Cardinality.HAS_ONE)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ScopeKind(str, Enum):
    """Variants of a component base scope."""

    LITERAL = "literal"  # SQL text, optionally with bound params
    NAMED = "named"  # named scope declared on the model
    CONDITIONS = "conditions"  # attribute -> value (or operator map)
    CALLABLE = "callable"  # fn(select, model) -> select


class FilterComparison(str, Enum):
    """Comparison used by numeric and date column filters."""

    EQ = "eq"
    LT = "lt"
    GT = "gt"


class SearchOperator(str, Enum):
    """Operators accepted from the extended search form."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    IS_NULL = "is_null"
