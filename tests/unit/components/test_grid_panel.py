"""
Unit tests for GridPanel.
"""

import pytest

from basepack.components import GridPanel
from basepack.components.base import ComponentContext
from basepack.components.grid_panel import resolve_model, rows_to_csv
from basepack.core.exceptions import ConfigurationError, UnknownComponentError
from tests.helpers.fakes import FakeRecordRepository, RepositoryFactory
from tests.helpers.models import Role, User

USER_COLUMNS = ["id", "email", "first_name", "role__name"]


class UserGridWithCustomizedFormFields(GridPanel):
    default_config = {"model": "User", "title": "Users"}

    def default_fields_for_forms(self):
        return [
            {"xtype": "fieldset", "title": "Basic Info", "checkbox_toggle": True, "items": [
                "first_name",
                {"name": "last_name"},
            ]},
            {"xtype": "fieldset", "title": "Timestamps", "items": [
                {"name": "created_at", "disabled": True},
                {"name": "updated_at", "disabled": True},
            ]},
            "role__name",
        ]


@pytest.fixture
def grid_factory(context):
    def build(**config):
        config.setdefault("model", User)
        config.setdefault("columns", USER_COLUMNS)
        return GridPanel(context, "users", config)

    return build


@pytest.fixture
def grid(grid_factory):
    return grid_factory()


class TestModelAndColumns:

    def test_model_by_name(self, grid_factory):
        grid = grid_factory(model="User")

        assert grid.model is User
        assert grid.primary_key == "id"

    def test_unknown_model(self):
        with pytest.raises(ConfigurationError):
            resolve_model("Nope")

    def test_default_columns_are_model_attributes(self, grid_factory):
        grid = grid_factory(columns=None)

        names = [column.name for column in grid.columns()]
        assert names[:3] == ["id", "email", "first_name"]
        assert "role_id" in names

    def test_columns_are_memoized(self, grid):
        assert grid.columns() is grid.columns()

    def test_columns_with_meta(self, grid):
        names = [column.name for column in grid.columns(with_meta=True)]

        assert names == USER_COLUMNS + ["_meta"]

    def test_default_rows_per_page(self, grid):
        assert grid.config["rows_per_page"] == 30
        assert grid.pagination().per_page == 30

    def test_config_lists_are_not_shared_between_instances(self, grid_factory):
        first = grid_factory()
        first.config["tools"].append("gear")

        second = grid_factory()

        assert second.config["tools"] == ["refresh"]
        assert GridPanel.default_config["tools"] == ["refresh"]


class TestActionsAndToolbars:

    def test_actions(self, grid):
        actions = grid.actions()

        assert set(actions) == {"add", "edit", "del", "apply", "add_in_form", "edit_in_form", "search"}
        assert actions["add"]["text"] == "Add"
        assert actions["del"]["tooltip"] == "Delete"
        assert actions["add"]["disabled"] is False
        assert actions["edit"]["disabled"] is True

    def test_prohibit_create_disables_add(self, grid_factory):
        actions = grid_factory(prohibit_create=True).actions()

        assert actions["add"]["disabled"] is True
        assert actions["add_in_form"]["disabled"] is True
        assert actions["apply"]["disabled"] is False

    def test_apply_disabled_when_create_and_update_prohibited(self, grid_factory):
        actions = grid_factory(prohibit_create=True, prohibit_update=True).actions()

        assert actions["apply"]["disabled"] is True

    def test_default_bbar_and_context_menu(self, grid):
        assert grid.default_bbar() == [
            "add", "edit", "apply", "del", "-", "add_in_form", "edit_in_form", "-", "search",
        ]
        assert grid.default_context_menu() == ["edit", "del", "-", "edit_in_form"]

    def test_bbar_without_optional_features(self, grid_factory):
        grid = grid_factory(enable_edit_in_form=False, enable_extended_search=False)

        assert grid.default_bbar() == ["add", "edit", "apply", "del"]
        assert grid.default_context_menu() == ["edit", "del"]
        assert "search" not in grid.actions()
        assert grid.child_names() == []

    def test_export_action_and_bbar_entry(self, grid_factory):
        grid = grid_factory(enable_export=True)

        assert grid.actions()["export"]["text"] == "Export"
        assert grid.default_bbar()[-2:] == ["-", "export"]
        assert "export" not in grid_factory().actions()

    @pytest.mark.asyncio
    async def test_explicit_bbar_wins_even_when_none(self, grid_factory):
        payload = await grid_factory(bbar=None, context_menu=["del"]).render()

        assert payload["bbar"] is None
        assert payload["context_menu"] == ["del"]


class TestRender:

    @pytest.mark.asyncio
    async def test_render_payload(self, grid):
        payload = await grid.render()

        assert payload["id"] == "users"
        assert payload["class_name"] == "GridPanel"
        assert payload["model"] == "User"
        assert payload["pri"] == "id"
        assert payload["columns_order"] == USER_COLUMNS
        assert [c["name"] for c in payload["columns"]][-1] == "_meta"
        assert payload["tools"] == ["refresh"]
        assert payload["enable_pagination"] is True
        assert payload["components"] == {}
        assert payload["inline_data"]["total"] == 3
        assert payload["inline_data"]["rows"][0]["_meta"]["association_values"] == {"role__name": "admin"}

    @pytest.mark.asyncio
    async def test_render_without_inline_data(self, grid_factory):
        payload = await grid_factory(load_inline_data=False).render()

        assert payload["inline_data"] is None

    @pytest.mark.asyncio
    async def test_server_only_config_is_not_rendered(self, grid_factory):
        payload = await grid_factory(scope={"role_id": 1}, strong_default_attrs={"role_id": 1}).render()

        assert "scope" not in payload
        assert "strong_default_attrs" not in payload
        assert payload["model"] == "User"


class TestDataEndpoints:

    @pytest.mark.asyncio
    async def test_get_data(self, grid, user_repository):
        result = await grid.call_endpoint(
            "get_data",
            {
                "start": 0,
                "limit": "2",
                "sort": "email",
                "dir": "DESC",
                "filters": [{"field": "email", "type": "string", "value": "ann"}],
            },
        )

        assert result["total"] == 3
        plan = user_repository.plans[-1]
        assert plan.pagination.per_page == 2
        assert "ORDER BY test_users.email DESC" in str(plan.statement)

    @pytest.mark.asyncio
    async def test_get_data_with_search_query(self, grid, user_repository):
        await grid.call_endpoint(
            "get_data",
            {"query": [{"field": "first_name", "operator": "starts_with", "value": "A"}]},
        )

        assert "lower(test_users.first_name) LIKE" in str(user_repository.plans[-1].statement)

    @pytest.mark.asyncio
    async def test_filters_rejected_when_disabled(self, grid_factory):
        grid = grid_factory(enable_column_filters=False)

        with pytest.raises(ConfigurationError):
            await grid.call_endpoint(
                "get_data", {"filters": [{"field": "email", "type": "string", "value": "a"}]}
            )

    @pytest.mark.asyncio
    async def test_post_data_creates_and_updates(self, grid, user_repository):
        result = await grid.call_endpoint(
            "post_data",
            {
                "created": [{"email": "dee@example.com", "first_name": "Dee"}],
                "updated": [
                    {"id": 2, "first_name": "Bobby"},
                    {"_meta": {"pri": 42}, "first_name": "Nobody"},
                ],
            },
        )

        assert [r["success"] for r in result["created"]] == [True]
        assert [r["success"] for r in result["updated"]] == [True, False]
        assert result["updated"][1]["error"] == "not_found"
        assert user_repository.records[2].first_name == "Bobby"

    @pytest.mark.asyncio
    async def test_strong_default_attrs_apply_to_inline_create(self, grid_factory, user_repository):
        grid = grid_factory(strong_default_attrs={"role_id": 2})

        result = await grid.call_endpoint(
            "post_data", {"created": [{"email": "dee@example.com", "role__name": 1}]}
        )

        assert user_repository.records[result["created"][0]["id"]].role_id == 2

    @pytest.mark.asyncio
    async def test_delete_data(self, grid, user_repository):
        result = await grid.call_endpoint("delete_data", {"records": [1, 2, 99]})

        assert [r["success"] for r in result["results"]] == [True, True, False]
        assert list(user_repository.records) == [3]

    @pytest.mark.asyncio
    async def test_delete_prohibited(self, grid_factory, user_repository):
        result = await grid_factory(prohibit_delete=True).call_endpoint("delete_data", {"records": [1]})

        assert result["results"][0]["error"] == "permission_denied"
        assert 1 in user_repository.records

    @pytest.mark.asyncio
    async def test_move_rows_requires_option(self, grid):
        with pytest.raises(ConfigurationError):
            await grid.call_endpoint("move_rows", {"ids": [3], "position": 0})

    @pytest.mark.asyncio
    async def test_move_rows(self, grid_factory, user_repository):
        for index, record in enumerate(user_repository.records.values()):
            record.position = index

        await grid_factory(enable_rows_reordering=True).call_endpoint(
            "move_rows", {"ids": [1], "position": 2}
        )

        assert [r.position for r in user_repository.records.values()] == [2, 0, 1]


class TestColumnPersistence:

    @pytest.fixture
    def mounted(self, context):
        context.registry.mount("users", "GridPanel", model=User, columns=USER_COLUMNS, persistence=True)
        return context

    @pytest.mark.asyncio
    async def test_move_column_is_persisted(self, mounted):
        grid = await mounted.registry.resolve_path("users", mounted)

        result = await grid.call_endpoint("move_column", {"old_index": 3, "new_index": 1})

        assert result == {"saved": True}
        reloaded = await mounted.registry.resolve_path("users", mounted)
        assert reloaded.columns_order() == ["id", "role__name", "email", "first_name"]
        names = [c.name for c in reloaded.columns(with_meta=True)]
        assert names == ["id", "role__name", "email", "first_name", "_meta"]

    @pytest.mark.asyncio
    async def test_resize_and_hide_column(self, mounted):
        grid = await mounted.registry.resolve_path("users", mounted)

        await grid.call_endpoint("resize_column", {"name": "email", "width": 240})
        await grid.call_endpoint("hide_column", {"name": "first_name"})

        reloaded = await mounted.registry.resolve_path("users", mounted)
        columns = {c.name: c for c in reloaded.columns(with_meta=True)}
        assert columns["email"].to_public()["width"] == 240
        assert columns["first_name"].hidden is True

    @pytest.mark.asyncio
    async def test_filters_and_page_are_persisted(self, mounted, state_store):
        grid = await mounted.registry.resolve_path("users", mounted)

        await grid.call_endpoint(
            "get_data",
            {"start": 30, "filters": [{"field": "email", "type": "string", "value": "ann"}]},
        )

        state = await state_store.load("tester", "users")
        assert state.page == 1
        assert state.filters[0].value == "ann"

    @pytest.mark.asyncio
    async def test_nothing_saved_without_persistence(self, grid, state_store):
        result = await grid.call_endpoint("move_column", {"old_index": 0, "new_index": 1})

        assert result == {"saved": False}
        assert (await state_store.load("tester", "users")).columns_order is None


class TestDefaultAssociationValues:

    @pytest.mark.asyncio
    async def test_resolves_display_value_once(self, registry, user_repository, roles):
        role_repository = FakeRecordRepository(Role, roles)
        context = ComponentContext(
            registry=registry,
            repository_factory=RepositoryFactory(user_repository, role_repository),
        )
        grid = GridPanel(
            context,
            "users",
            {"model": User, "columns": ["email", {"name": "role__name", "default_value": 2}]},
        )

        values = await grid.get_default_association_values()

        assert values == {"role__name": "writer"}
        assert await grid.get_default_association_values() is values
        assert grid.columns_default_values() == {"role__name": 2}

    @pytest.mark.asyncio
    async def test_add_form_carries_display_values(self, registry, user_repository, roles):
        role_repository = FakeRecordRepository(Role, roles)
        context = ComponentContext(
            registry=registry,
            repository_factory=RepositoryFactory(user_repository, role_repository),
        )
        grid = GridPanel(
            context,
            "users",
            {"model": User, "columns": ["email", {"name": "role__name", "default_value": 2}]},
        )

        node = await grid.resolve_child("add_form")

        record_values = node.config["items"][0]["record_values"]
        assert record_values["role__name"] == 2
        assert record_values["_meta"] == {"association_values": {"role__name": "writer"}}


class TestChildForms:

    @pytest.mark.asyncio
    async def test_add_form_config(self, grid_factory):
        grid = grid_factory(
            strong_default_attrs={"role_id": 2},
            add_form_window_config={"width": 600},
            add_form_config={"label_width": 120},
        )

        node = await grid.resolve_child("add_form")

        assert node.lazy_loading is True
        assert node.component_class.__name__ == "RecordFormWindow"
        assert node.config["title"] == "Add User"
        assert node.config["width"] == 600
        form = node.config["items"][0]
        assert form["class_name"] == "FormPanel"
        assert form["strong_default_attrs"] == {"role_id": 2}
        assert form["label_width"] == 120
        assert [field["name"] for field in form["items"]] == ["email", "first_name", "role__name"]

    @pytest.mark.asyncio
    async def test_multi_edit_and_search_titles(self, grid):
        multi_edit = await grid.resolve_child("multi_edit_form")
        search = await grid.resolve_child("search_form")

        assert multi_edit.config["title"] == "Edit Users"
        assert multi_edit.config["items"][0]["class_name"] == "MultiEditForm"
        assert search.config["title"] == "Search Users"
        assert search.component_class.__name__ == "SearchWindow"

    @pytest.mark.asyncio
    async def test_forms_unavailable_without_edit_in_form(self, grid_factory):
        grid = grid_factory(enable_edit_in_form=False)

        with pytest.raises(UnknownComponentError):
            await grid.resolve_child("edit_form")

    @pytest.mark.asyncio
    async def test_deliver_edit_form_with_record(self, grid):
        payload = await grid.call_endpoint("deliver_component", {"name": "edit_form", "record_id": 1})

        assert payload["id"] == "users__edit_form"
        assert payload["title"] == "Edit User"
        form = payload["components"]["form"]
        assert form["id"] == "users__edit_form__form"
        assert form["values"]["email"] == "ann@example.com"
        assert form["values"]["role__name"] == 1

    @pytest.mark.asyncio
    async def test_customized_form_fields(self, context):
        grid = UserGridWithCustomizedFormFields(context, "users")

        payload = await grid.call_endpoint("deliver_component", {"name": "add_form"})

        items = payload["components"]["form"]["items"]
        assert [item["title"] for item in items[:2]] == ["Basic Info", "Timestamps"]
        assert [field["name"] for field in items[0]["items"]] == ["first_name", "last_name"]
        assert items[1]["items"][0]["read_only"] is True
        assert items[2]["name"] == "role__name"


class TestExport:

    @pytest.mark.asyncio
    async def test_export_csv(self, grid_factory):
        grid = grid_factory(enable_export=True)

        result = await grid.call_endpoint("export", {})

        assert result["filename"] == "users.csv"
        assert result["content_type"] == "text/csv"
        assert result["data"].splitlines() == [
            "Email,First name,Role name",
            "ann@example.com,Ann,admin",
            "bob@example.com,Bob,",
            "cid@example.com,Cid,admin",
        ]

    @pytest.mark.asyncio
    async def test_export_follows_column_order_and_visibility(self, context):
        context.registry.mount(
            "users", "GridPanel", model=User, columns=USER_COLUMNS, persistence=True, enable_export=True
        )
        grid = await context.registry.resolve_path("users", context)
        await grid.call_endpoint("move_column", {"old_index": 3, "new_index": 1})
        await grid.call_endpoint("hide_column", {"name": "first_name"})

        grid = await context.registry.resolve_path("users", context)
        result = await grid.call_endpoint("export", {})

        assert result["data"].splitlines()[0] == "Role name,Email"

    @pytest.mark.asyncio
    async def test_export_disabled(self, grid):
        with pytest.raises(ConfigurationError):
            await grid.call_endpoint("export", {})

    def test_rows_to_csv_uses_labels_and_display_values(self, grid):
        columns = [c for c in grid.columns() if c.name in ("email", "role__name")]
        rows = [
            {"email": "x@example.com", "role__name": 7, "_meta": {"association_values": {"role__name": "ops"}}},
            {"email": "y@example.com", "role__name": None},
        ]

        assert rows_to_csv(rows, columns) == "Email,Role name\r\nx@example.com,ops\r\ny@example.com,\r\n"
