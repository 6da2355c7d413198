"""
Unit tests for scope, filter, search and sort translation.

Statements are compiled, never executed.
"""

from datetime import datetime

import pytest
from sqlalchemy import select

from basepack.core.exceptions import ConfigurationError, InvalidFilterError, InvalidSortColumnError
from basepack.models.contracts.queries import FilterClause, Pagination, SearchCondition, SortSpec
from basepack.models.enums import FilterComparison, FilterType, SearchOperator, SortDirection
from basepack.services.columns import ColumnBuilder
from basepack.services.scope_translator import (
    ScopeExpression,
    build_query,
    coerce_scope,
    loader_options,
    named_scope,
    search_to_conditions,
)
from tests.helpers.models import Book, User


def compiled(statement):
    return statement.compile()


def sql(statement) -> str:
    return " ".join(str(compiled(statement)).split())


@pytest.fixture
def user_columns():
    return ColumnBuilder().build(
        User,
        [
            "email",
            "first_name",
            "position",
            "created_at",
            "role__name",
            {"name": "full_name", "sorting_scope": "sort_by_full_name"},
            {"name": "shout", "getter": lambda user: user.email.upper()},
        ],
    )


@pytest.fixture
def book_columns():
    return ColumnBuilder().build(
        Book, ["title", "exemplars", "digitized", "published_on", "author__last_name"]
    )


class TestCoerceScope:

    def test_variants(self):
        fn = lambda query: query  # noqa: E731

        assert coerce_scope(None) is None
        assert coerce_scope("is_active").kind.value == "literal"
        assert coerce_scope(("id > :min", {"min": 3})).params == {"min": 3}
        assert coerce_scope({"email": "a"}).kind.value == "conditions"
        assert coerce_scope(fn).value is fn

    def test_unsupported_scope(self):
        with pytest.raises(ConfigurationError):
            coerce_scope(42)

    def test_named_scope_requires_decorator(self):
        with pytest.raises(ConfigurationError):
            named_scope(User, "validate")

        assert named_scope(User, "active") is not None


class TestBaseScope:

    def test_literal_scope(self, user_columns):
        plan = build_query(User, user_columns, base_scope=ScopeExpression.literal("position > :p", p=2))

        assert "WHERE position > :p" in sql(plan.statement)
        assert compiled(plan.statement).params["p"] == 2

    def test_named_scope(self, user_columns):
        plan = build_query(User, user_columns, base_scope=ScopeExpression.named("active"))

        assert "WHERE test_users.is_active IS" in sql(plan.statement)

    def test_conditions_scope(self, user_columns):
        plan = build_query(
            User,
            user_columns,
            base_scope={"email": "ann@example.com", "role_id": None, "position": {"gte": 1}},
        )

        statement = sql(plan.statement)
        assert "test_users.email = :email_1" in statement
        assert "test_users.role_id IS NULL" in statement
        assert "test_users.position >= :position_1" in statement

    def test_callable_scope(self, user_columns):
        plan = build_query(User, user_columns, base_scope=lambda query: query.where(User.id < 10))

        assert "test_users.id < :id_1" in sql(plan.statement)

    def test_unknown_condition_attribute(self, user_columns):
        with pytest.raises(InvalidFilterError):
            build_query(User, user_columns, base_scope={"nickname": "x"})


class TestColumnFilters:

    def test_string_filter_is_case_insensitive_substring(self, user_columns):
        plan = build_query(
            User, user_columns, filters=[FilterClause(field="email", type=FilterType.STRING, value="ann")]
        )

        assert "lower(test_users.email) LIKE lower(:email_1)" in sql(plan.statement)
        assert compiled(plan.statement).params["email_1"] == "%ann%"

    def test_numeric_comparison(self, book_columns):
        plan = build_query(
            Book,
            book_columns,
            filters=[
                FilterClause(
                    field="exemplars", type=FilterType.NUMERIC, value=3, comparison=FilterComparison.GT
                )
            ],
        )

        assert "test_books.exemplars > :exemplars_1" in sql(plan.statement)

    def test_date_equality_covers_whole_day(self, book_columns):
        plan = build_query(
            Book,
            book_columns,
            filters=[FilterClause(field="published_on", type=FilterType.DATE, value="2024-05-01")],
        )

        statement = sql(plan.statement)
        params = compiled(plan.statement).params
        assert "test_books.published_on >= :published_on_1" in statement
        assert "test_books.published_on < :published_on_2" in statement
        assert params["published_on_1"] == datetime(2024, 5, 1)
        assert params["published_on_2"] == datetime(2024, 5, 2)

    def test_invalid_date_value(self, book_columns):
        with pytest.raises(InvalidFilterError):
            build_query(
                Book,
                book_columns,
                filters=[FilterClause(field="published_on", type=FilterType.DATE, value="someday")],
            )

    def test_list_filter_values_or_together(self, user_columns):
        plan = build_query(
            User,
            user_columns,
            filters=[
                FilterClause(field="email", type=FilterType.LIST, value=["a@x.io", "b@x.io"]),
                FilterClause(field="first_name", type=FilterType.STRING, value="A"),
            ],
        )

        statement = sql(plan.statement)
        assert "test_users.email = :email_1 OR test_users.email = :email_2" in statement
        assert ") AND lower(test_users.first_name) LIKE" in statement

    def test_empty_list_filter_is_ignored(self, user_columns):
        plan = build_query(
            User, user_columns, filters=[FilterClause(field="email", type=FilterType.LIST, value=[])]
        )

        assert "WHERE" not in sql(plan.statement)

    def test_association_filter_joins_alias(self, user_columns):
        plan = build_query(
            User,
            user_columns,
            filters=[FilterClause(field="role__name", type=FilterType.STRING, value="adm")],
        )

        statement = sql(plan.statement)
        assert "LEFT OUTER JOIN test_roles AS test_roles_1" in statement
        assert "lower(test_roles_1.name) LIKE" in statement

    def test_unknown_filter_column(self, user_columns):
        with pytest.raises(InvalidFilterError):
            build_query(
                User, user_columns, filters=[FilterClause(field="nope", type=FilterType.STRING, value="x")]
            )

    def test_non_filterable_column(self, user_columns):
        with pytest.raises(InvalidFilterError):
            build_query(
                User, user_columns, filters=[FilterClause(field="shout", type=FilterType.STRING, value="x")]
            )


class TestSort:

    def test_sort_by_attribute_desc(self, user_columns):
        plan = build_query(User, user_columns, sort=SortSpec(column="email", direction=SortDirection.DESC))

        assert sql(plan.statement).endswith("ORDER BY test_users.email DESC")

    def test_sort_by_association(self, user_columns):
        plan = build_query(User, user_columns, sort=SortSpec(column="role__name"))

        statement = sql(plan.statement)
        assert "LEFT OUTER JOIN test_roles AS test_roles_1" in statement
        assert "ORDER BY test_roles_1.name ASC" in statement

    def test_sorting_scope_receives_direction(self, user_columns):
        plan = build_query(
            User, user_columns, sort=SortSpec(column="full_name", direction=SortDirection.DESC)
        )

        assert "ORDER BY test_users.first_name DESC, test_users.last_name DESC" in sql(plan.statement)

    def test_sort_by_unknown_column(self, user_columns):
        with pytest.raises(InvalidSortColumnError) as exc_info:
            build_query(User, user_columns, sort=SortSpec(column="nope"))

        assert exc_info.value.column == "nope"

    def test_sort_by_virtual_column_without_scope(self, user_columns):
        with pytest.raises(InvalidSortColumnError):
            build_query(User, user_columns, sort=SortSpec(column="shout"))


class TestPaginationAndLoading:

    def test_pagination_adds_offset_limit_and_count(self, user_columns):
        plan = build_query(User, user_columns, pagination=Pagination(page=2, per_page=10))

        params = compiled(plan.statement).params
        assert "LIMIT" in sql(plan.statement)
        assert sorted(value for key, value in params.items() if key.startswith("param")) == [10, 20]
        assert plan.count_statement is not None
        assert "count(*)" in sql(plan.count_statement)

    def test_unpaginated_plan_has_no_count(self, user_columns):
        plan = build_query(User, user_columns)

        assert plan.count_statement is None
        assert "LIMIT" not in sql(plan.statement)

    def test_loader_options_for_association_chains(self):
        columns = ColumnBuilder().build(User, ["email", "role__name", "role__department__name"])

        options = loader_options(User, columns)

        assert len(options) == 2
        # options are attachable to a select
        select(User).options(*options)

    def test_pagination_from_offset(self):
        pagination = Pagination.from_offset(60, 30)

        assert pagination.page == 2
        assert pagination.offset == 60


class TestSearch:

    def test_conditions_map(self, book_columns):
        conditions = search_to_conditions(
            book_columns,
            [
                SearchCondition(field="title", operator=SearchOperator.CONTAINS, value="dune"),
                SearchCondition(field="exemplars", operator=SearchOperator.BETWEEN, value=[2, 5]),
                SearchCondition(field="digitized", value=""),
            ],
        )

        assert conditions == {"title": {"contains": "dune"}, "exemplars": {"gte": 2, "lte": 5}}

    def test_unsupported_operator_for_type(self, book_columns):
        with pytest.raises(InvalidFilterError):
            search_to_conditions(
                book_columns,
                [SearchCondition(field="digitized", operator=SearchOperator.GT, value=True)],
            )

    def test_unknown_search_field(self, book_columns):
        with pytest.raises(InvalidFilterError):
            search_to_conditions(book_columns, [SearchCondition(field="isbn", value="1")])

    def test_search_combines_with_scope_and_filters(self, book_columns):
        plan = build_query(
            Book,
            book_columns,
            base_scope={"digitized": True},
            filters=[FilterClause(field="title", type=FilterType.STRING, value="du")],
            search={"exemplars": {"gte": 2}},
        )

        statement = sql(plan.statement)
        assert "WHERE test_books.digitized" in statement
        assert "lower(test_books.title) LIKE" in statement
        assert "test_books.exemplars >= :exemplars_1" in statement
