"""
Grid panel component.

Model-bound grid with automatic column configuration, CRUD (inline and via
forms), multi-record editing, permissions, sorting, pagination, column
filters, extended search, persistent column move/resize/hide and optional
drag-n-drop row reordering.

Instance configuration:

* model - mapped class (or its class name) providing the data
* columns - column specs: attribute names ("email", "role__name") or dicts
  with name, read_only, editable, filterable, getter, setter, sorting_scope,
  default_value and any display option
* scope - base constraint: SQL text, (SQL, params), a conditions dict,
  ScopeExpression.named(...), or a callable receiving the select
* strong_default_attrs - attributes forced onto every created/updated record
* prohibit_create / prohibit_update / prohibit_delete
* enable_column_filters, enable_edit_in_form, enable_extended_search
  (default on when the type's capabilities allow them)
* enable_rows_reordering (default off; model needs a `position` attribute)
* enable_pagination (default on), rows_per_page (default 30)
* enable_export - offer the export action (CSV of the filtered rows)
* load_inline_data - ship the first page with the render payload
* persistence - keep column order/widths/hidden/filters per user
* add_form_config / edit_form_config / multi_edit_form_config /
  search_form_config and the matching *_window_config - deep-merged into
  the child configs
"""

import csv
import io
import logging
from typing import Any

from sqlalchemy.orm import selectinload

from basepack.components.base import Component, child, endpoint
from basepack.core.deep_merge import deep_merge
from basepack.core.exceptions import ConfigurationError
from basepack.core.localization import ACTION_KEY_PREFIX
from basepack.core.permissions import ConfigPermissions
from basepack.models.contracts.columns import ColumnDescriptor
from basepack.models.contracts.queries import FilterClause, Pagination, SearchCondition, SortSpec
from basepack.models.contracts.results import DataPage
from basepack.models.orm.base import find_model
from basepack.services.columns import META_COLUMN, ColumnBuilder
from basepack.services.entity_metadata import entity_metadata
from basepack.services.record_service import RecordService
from basepack.services.scope_translator import QueryPlan, build_query, search_to_conditions

logger = logging.getLogger(__name__)


def resolve_model(ref: Any) -> type:
    """Mapped class from a class or class name."""
    if isinstance(ref, type):
        return ref
    if isinstance(ref, str):
        model = find_model(ref)
        if model is not None:
            return model
    raise ConfigurationError(f"Unknown model {ref!r}")


class GridPanel(Component):
    """Grid bound to a model."""

    default_config = {
        "load_inline_data": True,
        "enable_rows_reordering": False,
        "enable_pagination": True,
        "enable_export": False,
        "tools": ["refresh"],
        "scope": None,
        "strong_default_attrs": {},
        "prohibit_create": False,
        "prohibit_update": False,
        "prohibit_delete": False,
        "persistence": False,
    }

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._columns: dict[bool, list[ColumnDescriptor]] = {}
        self._default_association_values: dict[str, Any] | None = None

    def configuration(self) -> dict[str, Any]:
        return {"rows_per_page": self.context.default_rows_per_page}

    # =========================================================================
    # Model and columns
    # =========================================================================

    @property
    def model(self) -> type:
        return resolve_model(self.config.get("model"))

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @property
    def primary_key(self) -> str:
        return entity_metadata(self.model).primary_key

    def default_columns(self) -> list[Any]:
        """All column attributes of the model, when no columns are configured."""
        return list(entity_metadata(self.model).column_attributes)

    def column_builder(self) -> ColumnBuilder:
        return ColumnBuilder(
            localizer=self.context.localizer,
            max_association_depth=self.context.max_association_depth,
        )

    def columns(self, with_meta: bool = False) -> list[ColumnDescriptor]:
        """
        Resolved columns, built once per instance.

        With meta, the order follows the persisted column order (when
        persistence is on), persisted widths and hidden flags are applied and
        the hidden meta column is appended.
        """
        if with_meta not in self._columns:
            specs = self.config.get("columns") or self.default_columns()
            columns = self.column_builder().build(
                self.model,
                specs,
                with_meta=with_meta,
                columns_order=self.state.columns_order if self.persistent else None,
            )
            if with_meta and self.persistent:
                columns = [self._with_persisted_display(column) for column in columns]
            self._columns[with_meta] = columns
        return self._columns[with_meta]

    def _with_persisted_display(self, column: ColumnDescriptor) -> ColumnDescriptor:
        updates: dict[str, Any] = {}
        if column.name in self.state.column_widths:
            updates["width"] = self.state.column_widths[column.name]
        if column.name in self.state.hidden_columns:
            updates["hidden"] = True
        return column.model_copy(update=updates) if updates else column

    def initial_columns_order(self) -> list[str]:
        return [column.name for column in self.columns()]

    def columns_order(self) -> list[str]:
        if self.persistent and self.state.columns_order:
            return list(self.state.columns_order)
        return self.initial_columns_order()

    # =========================================================================
    # Data access
    # =========================================================================

    def record_service(self) -> RecordService:
        return RecordService(
            self.context.repository_factory(self.context.session, self.model),
            self.columns(),
            permissions=ConfigPermissions(self.config, self.context.permissions),
            strong_default_attrs=self.config.get("strong_default_attrs"),
            context={"component": self.global_id, "user": self.context.user_key},
            base_scope=self.config.get("scope"),
        )

    def pagination(self, start: int = 0, limit: int | None = None) -> Pagination | None:
        if not self.config.get("enable_pagination"):
            return None
        return Pagination.from_offset(start, limit or self.config["rows_per_page"])

    def query_plan(
        self,
        filters: list[FilterClause] | None = None,
        sort: SortSpec | None = None,
        pagination: Pagination | None = None,
        search: list[SearchCondition] | None = None,
    ) -> QueryPlan:
        """Query for the grid's rows: base scope AND filters AND search."""
        if filters and not self.config.get("enable_column_filters"):
            raise ConfigurationError(f"Column filters are disabled for {self.global_id}")
        if search and not self.config.get("enable_extended_search"):
            raise ConfigurationError(f"Extended search is disabled for {self.global_id}")
        columns = self.columns()
        return build_query(
            self.model,
            columns,
            base_scope=self.config.get("scope"),
            filters=filters or (),
            sort=sort,
            pagination=pagination,
            search=search_to_conditions(columns, search) if search else None,
            builder=self.column_builder(),
        )

    async def get_data(
        self,
        filters: list[FilterClause] | None = None,
        sort: SortSpec | None = None,
        pagination: Pagination | None = None,
        search: list[SearchCondition] | None = None,
    ) -> DataPage:
        plan = self.query_plan(filters, sort, pagination, search)
        return await self.record_service().get_data(plan)

    async def get_default_association_values(self) -> dict[str, Any]:
        """
        Display values for association columns with a default_value.

        The default value is an id of the first associated entity; computed
        once per component instance.
        """
        if self._default_association_values is None:
            values = {}
            for column in self.columns():
                if not column.is_association or column.default_value is None:
                    continue
                values[column.name] = await self._association_display(column)
            self._default_association_values = values
        return self._default_association_values

    async def _association_display(self, column: ColumnDescriptor) -> Any:
        first, *rest = column.association
        target = entity_metadata(self.model).association(first).target
        options = []
        if rest:
            entity, option = target, None
            for link in rest:
                attribute = getattr(entity, link)
                option = selectinload(attribute) if option is None else option.selectinload(attribute)
                entity = attribute.property.mapper.class_
            options.append(option)
        current = await self.context.repository_factory(self.context.session, target).find(
            column.default_value, options=options
        )
        for link in rest:
            if current is None:
                break
            current = getattr(current, link)
        if current is None:
            return None
        return getattr(current, column.association_attr)

    def columns_default_values(self) -> dict[str, Any]:
        """Initial values of a new record (add form)."""
        return {
            column.name: column.default_value
            for column in self.columns()
            if column.default_value is not None
        }

    # =========================================================================
    # Actions, toolbars
    # =========================================================================

    def actions(self) -> dict[str, dict[str, Any]]:
        def action(name: str, icon: str, disabled: bool = False, **extra: Any) -> dict[str, Any]:
            key = f"{ACTION_KEY_PREFIX}.{name}"
            return {
                "text": self.t(key),
                "tooltip": self.t(key),
                "icon": icon,
                "disabled": bool(disabled),
                **extra,
            }

        config = self.config
        actions = {
            "add": action("add", "add", disabled=config.get("prohibit_create")),
            "edit": action("edit", "table_edit", disabled=True),
            "del": action("del", "table_row_delete", disabled=True),
            "apply": action(
                "apply",
                "tick",
                disabled=config.get("prohibit_update") and config.get("prohibit_create"),
            ),
        }
        if config.get("enable_edit_in_form"):
            actions["add_in_form"] = action(
                "add_in_form", "application_form_add", disabled=config.get("prohibit_create")
            )
            actions["edit_in_form"] = action("edit_in_form", "application_form_edit", disabled=True)
        if config.get("enable_extended_search"):
            actions["search"] = action("search", "find", enable_toggle=True)
        if config.get("enable_export"):
            actions["export"] = action("export", "page_excel")
        return actions

    def default_bbar(self) -> list[str]:
        bbar = ["add", "edit", "apply", "del"]
        if self.config.get("enable_edit_in_form"):
            bbar += ["-", "add_in_form", "edit_in_form"]
        if self.config.get("enable_extended_search"):
            bbar += ["-", "search"]
        if self.config.get("enable_export"):
            bbar += ["-", "export"]
        return bbar

    def default_context_menu(self) -> list[str]:
        menu = ["edit", "del"]
        if self.config.get("enable_edit_in_form"):
            menu += ["-", "edit_in_form"]
        return menu

    async def render(self) -> dict[str, Any]:
        payload = await super().render()
        payload.update(
            {
                "bbar": self.config["bbar"] if "bbar" in self.config else self.default_bbar(),
                "context_menu": (
                    self.config["context_menu"]
                    if "context_menu" in self.config
                    else self.default_context_menu()
                ),
                "columns": [column.to_public() for column in self.columns(with_meta=True)],
                "columns_order": self.columns_order(),
                "model": self.model_name,
                "pri": self.primary_key,
                "inline_data": None,
            }
        )
        if self.config.get("load_inline_data"):
            page = await self.get_data(
                filters=self.state.filters if self.persistent else None,
                pagination=self.pagination(),
            )
            payload["inline_data"] = page.model_dump()
        return payload

    # =========================================================================
    # Child components
    # =========================================================================

    def child_available(self, name: str) -> bool:
        if name in ("add_form", "edit_form", "multi_edit_form"):
            return bool(self.config.get("enable_edit_in_form"))
        if name == "search_form":
            return bool(self.config.get("enable_extended_search"))
        return True

    def default_fields_for_forms(self) -> list[Any]:
        """Form fields derived from the grid's columns (primary key excluded)."""
        fields = []
        for column in self.columns():
            if column.primary_key:
                continue
            field: dict[str, Any] = {"name": column.name}
            if not column.editable:
                field["read_only"] = True
            if column.getter is not None:
                field["getter"] = column.getter
            if column.setter is not None:
                field["setter"] = column.setter
            fields.append(field)
        return fields

    def _form_window(self, kind: str, title: str, form: dict[str, Any]) -> dict[str, Any]:
        return deep_merge(
            {
                "lazy_loading": True,
                "class_name": "RecordFormWindow",
                "title": title,
                "button_align": "right",
                "items": [deep_merge(form, self.config.get(f"{kind}_form_config"))],
            },
            self.config.get(f"{kind}_form_window_config"),
        )

    def _form_defaults(self, class_name: str) -> dict[str, Any]:
        return {
            "class_name": class_name,
            "model": self.model,
            "scope": self.config.get("scope"),
            "items": self.default_fields_for_forms(),
            "persistent_config": self.config.get("persistent_config", False),
            "bbar": False,
            "header": False,
            "border": True,
            "mode": self.config.get("mode"),
            "prohibit_create": self.config.get("prohibit_create", False),
            "prohibit_update": self.config.get("prohibit_update", False),
        }

    @child
    async def add_form(self) -> dict[str, Any]:
        record_values = self.columns_default_values()
        association_values = await self.get_default_association_values()
        if association_values:
            record_values[META_COLUMN] = {"association_values": association_values}
        form = {
            **self._form_defaults("FormPanel"),
            "strong_default_attrs": self.config.get("strong_default_attrs") or {},
            "record_values": record_values,
        }
        title = self.t("basepack.grid_panel.add_form_title", model=self.model_name)
        return self._form_window("add", title, form)

    @child
    def edit_form(self) -> dict[str, Any]:
        # record_id is merged in when the form is requested for a record
        form = {
            **self._form_defaults("FormPanel"),
            "strong_default_attrs": self.config.get("strong_default_attrs") or {},
        }
        title = self.t("basepack.grid_panel.edit_form_title", model=self.model_name)
        return self._form_window("edit", title, form)

    @child
    def multi_edit_form(self) -> dict[str, Any]:
        form = {
            **self._form_defaults("MultiEditForm"),
            "strong_default_attrs": self.config.get("strong_default_attrs") or {},
        }
        title = self.t("basepack.grid_panel.multi_edit_form_title", models=f"{self.model_name}s")
        return self._form_window("multi_edit", title, form)

    @child
    def search_form(self) -> dict[str, Any]:
        return deep_merge(
            {
                "lazy_loading": True,
                "class_name": "SearchWindow",
                "title": self.t("basepack.grid_panel.search_title", models=f"{self.model_name}s"),
                "model": self.model,
                "fields": self.default_fields_for_forms(),
            },
            self.config.get("search_form_config"),
        )

    # =========================================================================
    # Endpoints
    # =========================================================================

    @staticmethod
    def _request_query(
        params: dict[str, Any],
    ) -> tuple[list[FilterClause], SortSpec | None, list[SearchCondition]]:
        filters = [FilterClause.model_validate(f) for f in params.get("filters") or []]
        search = [SearchCondition.model_validate(c) for c in params.get("query") or []]
        sort = None
        if params.get("sort"):
            sort = SortSpec(column=params["sort"], direction=str(params.get("dir", "asc")).lower())
        return filters, sort, search

    @endpoint("get_data")
    async def _get_data(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Rows for the grid.

        params: start, limit, sort, dir, filters (list of filter clauses),
        query (list of search triples)
        """
        filters, sort, search = self._request_query(params)
        limit = params.get("limit")
        pagination = self.pagination(int(params.get("start") or 0), int(limit) if limit else None)

        if self.persistent:
            changes = {"page": pagination.page if pagination else None}
            if "filters" in params:
                changes["filters"] = filters
            await self.save_state(**changes)

        page = await self.get_data(filters, sort, pagination, search)
        return page.model_dump()

    @endpoint("export")
    async def _export(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        All rows matching the current filters, sort and search as CSV.

        params: as for get_data, without paging
        """
        if not self.config.get("enable_export"):
            raise ConfigurationError(f"Export is disabled for {self.global_id}")
        filters, sort, search = self._request_query(params)
        if "filters" not in params and self.persistent:
            filters = list(self.state.filters)

        page = await self.get_data(filters, sort, None, search)
        by_name = {column.name: column for column in self.columns(with_meta=True)}
        columns = [
            by_name[name]
            for name in self.columns_order()
            if name in by_name and not by_name[name].hidden
        ]
        logger.info(f"Exporting {len(page.rows)} {self.model_name} rows from {self.global_id}")
        return {
            "filename": f"{self.model_name.lower()}s.csv",
            "content_type": "text/csv",
            "data": rows_to_csv(page.rows, columns),
        }

    @endpoint("post_data")
    async def _post_data(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Inline create and update.

        params: created (list of attribute dicts), updated (list of attribute
        dicts carrying the primary key)
        """
        service = self.record_service()
        created = [await service.create(attrs) for attrs in params.get("created") or []]
        updated = await service.update_many(
            (self._record_id(attrs), attrs) for attrs in params.get("updated") or []
        )
        return {
            "created": [result.model_dump() for result in created],
            "updated": [result.model_dump() for result in updated],
        }

    def _record_id(self, attributes: dict[str, Any]) -> Any:
        if self.primary_key in attributes:
            return attributes[self.primary_key]
        return (attributes.get(META_COLUMN) or {}).get("pri")

    @endpoint("delete_data")
    async def _delete_data(self, params: dict[str, Any]) -> dict[str, Any]:
        results = await self.record_service().delete(params.get("records") or [])
        return {"results": [result.model_dump() for result in results]}

    @endpoint("move_rows")
    async def _move_rows(self, params: dict[str, Any]) -> dict[str, Any]:
        if not self.config.get("enable_rows_reordering"):
            raise ConfigurationError(f"Rows reordering is disabled for {self.global_id}")
        await self.record_service().move_rows(params.get("ids") or [], int(params["position"]))
        return {"success": True}

    @endpoint("move_column")
    async def _move_column(self, params: dict[str, Any]) -> dict[str, Any]:
        """Move a column from one index to another (persisted order)."""
        order = self.columns_order()
        column = order.pop(int(params["old_index"]))
        order.insert(int(params["new_index"]), column)
        return {"saved": await self.save_state(columns_order=order)}

    @endpoint("resize_column")
    async def _resize_column(self, params: dict[str, Any]) -> dict[str, Any]:
        widths = {**self.state.column_widths, params["name"]: int(params["width"])}
        return {"saved": await self.save_state(column_widths=widths)}

    @endpoint("hide_column")
    async def _hide_column(self, params: dict[str, Any]) -> dict[str, Any]:
        hidden = [name for name in self.state.hidden_columns if name != params["name"]]
        if params.get("hidden", True):
            hidden.append(params["name"])
        return {"saved": await self.save_state(hidden_columns=hidden)}

    @endpoint("deliver_component")
    async def _deliver_component(self, params: dict[str, Any]) -> dict[str, Any]:
        """Render a lazy child; the edit form receives the record id."""
        name = params["name"]
        node = await self.resolve_child(name)
        if name == "edit_form" and params.get("record_id") is not None:
            node.config = _merge_form_item(node.config, {"record_id": params["record_id"]})
        return await node.instantiate(self.context).render()


def rows_to_csv(rows: list[dict[str, Any]], columns: list[ColumnDescriptor]) -> str:
    """CSV with a label header; association cells use their display values."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=[column.name for column in columns])
    writer.writerow({column.name: column.label for column in columns})
    for row in rows:
        display = (row.get(META_COLUMN) or {}).get("association_values") or {}
        writer.writerow(
            {
                column.name: display.get(column.name) if column.is_association else row.get(column.name)
                for column in columns
            }
        )
    return buffer.getvalue()


def _merge_form_item(window_config: dict[str, Any], item_overrides: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge overrides into the single form item of a form window."""
    items = list(window_config.get("items") or [{}])
    items[0] = deep_merge(items[0], item_overrides)
    return {**window_config, "items": items}
