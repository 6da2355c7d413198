"""
Scope and filter translation.

Builds a composable SQLAlchemy query plan from a component's base scope,
the active column filters, extended search conditions, a sort directive and
pagination. The plan is executed elsewhere (RecordRepository).

Combination rules:
- base scope AND column filters AND search conditions
- filters on different columns AND together
- the values of a list filter OR together
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import Select, and_, func, or_, select, text
from sqlalchemy.orm import aliased, selectinload

from basepack.core.exceptions import (
    ConfigurationError,
    InvalidFilterError,
    InvalidSortColumnError,
    UnknownAttributeError,
)
from basepack.models.contracts.columns import ColumnDescriptor, ColumnSpec
from basepack.models.contracts.queries import FilterClause, Pagination, SearchCondition, SortSpec
from basepack.models.enums import (
    FilterComparison,
    FilterType,
    ScopeKind,
    SearchOperator,
    SortDirection,
)
from basepack.services.columns import ColumnBuilder

logger = logging.getLogger(__name__)


# =============================================================================
# Scope expressions
# =============================================================================


def scope(func: Callable) -> classmethod:
    """
    Declare a named scope on a model.

        class User(Base):
            @scope
            def active(cls, query):
                return query.where(cls.is_active.is_(True))

            @scope
            def sort_by_full_name(cls, query, direction):
                ...

    Only methods declared this way can be referenced by name from config.
    """
    func.__basepack_scope__ = True
    return classmethod(func)


@dataclass(frozen=True)
class ScopeExpression:
    """Base constraint of a component; one of the ScopeKind variants."""

    kind: ScopeKind
    value: Any
    args: tuple = ()
    params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def literal(cls, sql: str, **params: Any) -> "ScopeExpression":
        return cls(ScopeKind.LITERAL, sql, params=params)

    @classmethod
    def named(cls, name: str, *args: Any) -> "ScopeExpression":
        return cls(ScopeKind.NAMED, name, args=args)

    @classmethod
    def conditions(cls, conditions: Mapping[str, Any]) -> "ScopeExpression":
        return cls(ScopeKind.CONDITIONS, dict(conditions))

    @classmethod
    def callable(cls, fn: Callable[[Select], Select]) -> "ScopeExpression":
        return cls(ScopeKind.CALLABLE, fn)


def coerce_scope(value: Any) -> ScopeExpression | None:
    """
    Normalize a configured scope.

    - ScopeExpression: used as is
    - str: literal SQL condition
    - (str, dict): literal SQL with bound parameters
    - dict: conditions map
    - callable: receives the select and returns a modified one
    """
    if value is None or isinstance(value, ScopeExpression):
        return value
    if isinstance(value, str):
        return ScopeExpression.literal(value)
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        return ScopeExpression.literal(value[0], **value[1])
    if isinstance(value, Mapping):
        return ScopeExpression.conditions(value)
    if callable(value):
        return ScopeExpression.callable(value)
    raise ConfigurationError(f"Unsupported scope: {value!r}")


def named_scope(model: type, name: str) -> Callable[..., Select]:
    """Bound named scope of a model."""
    fn = getattr(model, name, None)
    if fn is None or not getattr(fn, "__basepack_scope__", False):
        raise ConfigurationError(f"{model.__name__} has no scope named '{name}'")
    return fn


# =============================================================================
# Search operators
# =============================================================================

_EQUALITY = {SearchOperator.EQ, SearchOperator.NE, SearchOperator.IN, SearchOperator.IS_NULL}
_RANGE = {
    SearchOperator.GT,
    SearchOperator.GTE,
    SearchOperator.LT,
    SearchOperator.LTE,
    SearchOperator.BETWEEN,
}

SEARCH_OPERATORS: dict[FilterType, frozenset[SearchOperator]] = {
    FilterType.STRING: frozenset(
        _EQUALITY
        | {SearchOperator.CONTAINS, SearchOperator.STARTS_WITH, SearchOperator.ENDS_WITH}
    ),
    FilterType.NUMERIC: frozenset(_EQUALITY | _RANGE),
    FilterType.DATE: frozenset(
        {SearchOperator.EQ, SearchOperator.NE, SearchOperator.IS_NULL} | _RANGE
    ),
    FilterType.BOOLEAN: frozenset({SearchOperator.EQ, SearchOperator.IS_NULL}),
    FilterType.LIST: frozenset(_EQUALITY),
}


def operators_for(column: ColumnDescriptor) -> frozenset[SearchOperator]:
    """Search operators a column supports (none when it cannot be filtered)."""
    if column.filter_type is None:
        return frozenset()
    return SEARCH_OPERATORS[column.filter_type]


def search_to_conditions(
    columns: Sequence[ColumnDescriptor],
    conditions: Iterable[SearchCondition],
) -> dict[str, dict[str, Any]]:
    """
    Translate search form triples into a conditions map.

    Empty values are skipped (blank search fields). "between" expands to a
    gte/lte pair.

    Raises:
        InvalidFilterError: Unknown field or operator not valid for its type
    """
    by_name = {column.name: column for column in columns}
    result: dict[str, dict[str, Any]] = {}

    for condition in conditions:
        column = by_name.get(condition.field)
        if column is None:
            raise InvalidFilterError(f"Cannot search by unknown field '{condition.field}'")
        if condition.operator not in operators_for(column):
            raise InvalidFilterError(
                f"Operator '{condition.operator.value}' is not supported for "
                f"field '{condition.field}'"
            )
        if condition.value is None or condition.value == "":
            if condition.operator is not SearchOperator.IS_NULL:
                continue

        ops = result.setdefault(condition.field, {})
        if condition.operator is SearchOperator.BETWEEN:
            low, high = condition.value
            if low not in (None, ""):
                ops["gte"] = low
            if high not in (None, ""):
                ops["lte"] = high
        elif condition.operator is SearchOperator.IS_NULL:
            ops["is_null"] = True if condition.value in (None, "") else bool(condition.value)
        else:
            ops[condition.operator.value] = condition.value

    return {name: ops for name, ops in result.items() if ops}


# =============================================================================
# Query plan
# =============================================================================


def loader_options(model: type, columns: Iterable[ColumnDescriptor]) -> list[Any]:
    """
    Eager loader options for the association chains used by columns.

    Async sessions cannot lazy load, so every chain a column reads is
    preloaded with selectinload.
    """
    options = []
    paths = {column.association for column in columns if column.is_association}
    for links in sorted(paths):
        entity = model
        option = None
        for link in links:
            attribute = getattr(entity, link)
            option = selectinload(attribute) if option is None else option.selectinload(attribute)
            entity = attribute.property.mapper.class_
        options.append(option)
    return options


@dataclass(frozen=True)
class QueryPlan:
    """Composed, not yet executed query."""

    model: type
    statement: Select
    count_statement: Select | None = None
    pagination: Pagination | None = None


def _coerce_date(value: Any) -> date | datetime:
    if isinstance(value, (date, datetime)):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise InvalidFilterError(f"Invalid date filter value: {value!r}")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


class _QueryState:
    """Accumulates joins and criteria for one build."""

    def __init__(self, model: type, columns: Sequence[ColumnDescriptor], builder: ColumnBuilder):
        self.model = model
        self.columns = {column.name: column for column in columns}
        self.builder = builder
        self.statement: Select = select(model)
        self._aliases: dict[tuple[str, ...], Any] = {}

    # -------------------------------------------------------------------------
    # Column expressions
    # -------------------------------------------------------------------------

    def column(self, name: str) -> ColumnDescriptor:
        if name in self.columns:
            return self.columns[name]
        column = self.builder.build_column(self.model, ColumnSpec(name=name))
        self.columns[name] = column
        return column

    def _join(self, links: tuple[str, ...]) -> Any:
        parent = self.model
        for depth in range(1, len(links) + 1):
            path = links[:depth]
            if path not in self._aliases:
                relationship = getattr(parent, path[-1])
                alias = aliased(relationship.property.mapper.class_)
                self.statement = self.statement.outerjoin(relationship.of_type(alias))
                self._aliases[path] = alias
            parent = self._aliases[path]
        return parent

    def expression(self, column: ColumnDescriptor) -> Any:
        """SQL expression behind a column, joining associations as needed."""
        if column.virtual:
            raise InvalidFilterError(f"Column '{column.name}' has no database attribute")
        if column.is_association:
            return getattr(self._join(column.association), column.association_attr)
        return getattr(self.model, column.name)

    # -------------------------------------------------------------------------
    # Criteria
    # -------------------------------------------------------------------------

    def apply_scope(self, expression: ScopeExpression | None) -> None:
        if expression is None:
            return
        if expression.kind is ScopeKind.LITERAL:
            clause = text(expression.value)
            if expression.params:
                clause = clause.bindparams(**expression.params)
            self.statement = self.statement.where(clause)
        elif expression.kind is ScopeKind.NAMED:
            fn = named_scope(self.model, expression.value)
            self.statement = fn(self.statement, *expression.args)
        elif expression.kind is ScopeKind.CONDITIONS:
            self.apply_conditions(expression.value)
        elif expression.kind is ScopeKind.CALLABLE:
            self.statement = expression.value(self.statement)

    def apply_conditions(self, conditions: Mapping[str, Any]) -> None:
        """
        Apply a conditions map.

        Supports:
        - Simple equality: {"status": "active"}
        - NULL: {"deleted_at": None}
        - IN lists: {"category": ["a", "b"]}
        - Operators: {"amount": {"gt": 100, "lte": 1000}}
          eq, ne, gt, gte, lt, lte, contains, starts_with, ends_with,
          in / in_, is_null
        """
        for name, value in conditions.items():
            try:
                expr = self.expression(self.column(name))
            except UnknownAttributeError as e:
                raise InvalidFilterError(str(e))

            if isinstance(value, Mapping):
                for op, op_value in value.items():
                    self.statement = self.statement.where(self._operator(expr, op, op_value))
            elif value is None:
                self.statement = self.statement.where(expr.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                self.statement = self.statement.where(expr.in_(list(value)))
            else:
                self.statement = self.statement.where(expr == value)

    @staticmethod
    def _operator(expr: Any, op: str, value: Any) -> Any:
        if op == "eq":
            return expr == value
        if op == "ne":
            return expr != value
        if op == "contains":
            return expr.ilike(f"%{value}%")
        if op == "starts_with":
            return expr.ilike(f"{value}%")
        if op == "ends_with":
            return expr.ilike(f"%{value}")
        if op == "gt":
            return expr > value
        if op == "gte":
            return expr >= value
        if op == "lt":
            return expr < value
        if op == "lte":
            return expr <= value
        if op in ("in", "in_"):
            return expr.in_(list(value))
        if op == "is_null":
            return expr.is_(None) if value else expr.isnot(None)
        raise InvalidFilterError(f"Unknown condition operator '{op}'")

    def apply_filter(self, clause: FilterClause) -> None:
        if clause.field not in self.columns:
            raise InvalidFilterError(f"Cannot filter by unknown column '{clause.field}'")
        column = self.columns[clause.field]
        if not column.filterable:
            raise InvalidFilterError(f"Column '{clause.field}' is not filterable")

        expr = self.expression(column)
        comparison = clause.comparison or FilterComparison.EQ

        if clause.type is FilterType.STRING:
            criterion = expr.ilike(f"%{clause.value}%")
        elif clause.type is FilterType.NUMERIC:
            criterion = self._compare(expr, comparison, clause.value)
        elif clause.type is FilterType.DATE:
            criterion = self._date_criterion(expr, comparison, _coerce_date(clause.value))
        elif clause.type is FilterType.BOOLEAN:
            criterion = expr == _coerce_bool(clause.value)
        elif clause.type is FilterType.LIST:
            values = clause.value if isinstance(clause.value, list) else [clause.value]
            if not values:
                return
            criterion = or_(*(expr == value for value in values))
        else:
            raise InvalidFilterError(f"Unsupported filter type '{clause.type}'")

        self.statement = self.statement.where(criterion)

    @staticmethod
    def _compare(expr: Any, comparison: FilterComparison, value: Any) -> Any:
        if comparison is FilterComparison.LT:
            return expr < value
        if comparison is FilterComparison.GT:
            return expr > value
        return expr == value

    def _date_criterion(self, expr: Any, comparison: FilterComparison, value: date) -> Any:
        if comparison is not FilterComparison.EQ:
            return self._compare(expr, comparison, value)
        day = value.date() if isinstance(value, datetime) else value
        start = datetime.combine(day, datetime.min.time())
        return and_(expr >= start, expr < start + timedelta(days=1))

    def apply_sort(self, sort: SortSpec) -> None:
        column = self.columns.get(sort.column)
        if column is None or not column.sortable:
            raise InvalidSortColumnError(sort.column)

        if column.sorting_scope:
            fn = named_scope(self.model, column.sorting_scope)
            self.statement = fn(self.statement, sort.direction.value)
            return

        expr = self.expression(column)
        if sort.direction is SortDirection.DESC:
            self.statement = self.statement.order_by(expr.desc())
        else:
            self.statement = self.statement.order_by(expr.asc())

    def eager_load(self) -> None:
        options = loader_options(self.model, list(self.columns.values()))
        if options:
            self.statement = self.statement.options(*options)


def build_query(
    model: type,
    columns: Sequence[ColumnDescriptor],
    base_scope: Any = None,
    filters: Iterable[FilterClause] = (),
    sort: SortSpec | None = None,
    pagination: Pagination | None = None,
    search: Mapping[str, Any] | None = None,
    builder: ColumnBuilder | None = None,
) -> QueryPlan:
    """
    Compose the query for a grid request.

    Args:
        model: Mapped class to select
        columns: Resolved columns of the component (filter and sort targets)
        base_scope: Component scope (ScopeExpression or a raw config value)
        filters: Active column filters
        sort: Sort directive
        pagination: Page cursor; when given the plan carries a count query
        search: Conditions map from the extended search form

    Raises:
        InvalidSortColumnError: Sort column missing, virtual without a
            sorting scope, or not sortable
        InvalidFilterError: Filter on an unknown or non-filterable column
    """
    state = _QueryState(model, columns, builder or ColumnBuilder())

    state.apply_scope(coerce_scope(base_scope))
    for clause in filters:
        state.apply_filter(clause)
    if search:
        state.apply_conditions(search)

    count_statement = None
    if pagination is not None:
        count_statement = select(func.count()).select_from(state.statement.subquery())

    if sort is not None:
        state.apply_sort(sort)

    state.eager_load()

    statement = state.statement
    if pagination is not None:
        statement = statement.offset(pagination.offset).limit(pagination.per_page)

    logger.debug(
        f"Built query plan for {model.__name__} "
        f"(sort={sort.column if sort else None}, paginated={pagination is not None})"
    )
    return QueryPlan(
        model=model,
        statement=statement,
        count_statement=count_statement,
        pagination=pagination,
    )
