"""
Form components.

FormPanel edits one record of a model, or collects free-form values when no
model is configured. MultiEditForm applies the same values to a set of
records.

Items are field names, field dicts, or containers (e.g. fieldsets) holding
nested `items`:

    {
        "model": "User",
        "items": [
            {"xtype": "fieldset", "title": "Basic Info", "items": ["first_name", "last_name"]},
            "role__name",
        ],
    }
"""

import json
import logging
from collections.abc import Iterable, Iterator
from typing import Any

from basepack.components.base import Component, endpoint
from basepack.components.grid_panel import resolve_model
from basepack.core.exceptions import ConfigurationError, NotFoundError
from basepack.core.localization import humanize
from basepack.core.permissions import ConfigPermissions
from basepack.models.contracts.columns import ColumnDescriptor
from basepack.models.enums import AttrType
from basepack.services.columns import ColumnBuilder
from basepack.services.entity_metadata import entity_metadata
from basepack.services.record_service import RecordService

logger = logging.getLogger(__name__)

# Field keys that configure the column rather than the rendered widget
_COLUMN_KEYS = {"read_only", "editable", "getter", "setter", "default_value", "label", "hidden"}


def is_container(item: Any) -> bool:
    return isinstance(item, dict) and "items" in item and "name" not in item


def iter_fields(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    """Field dicts of an item tree, depth first, containers skipped."""
    for item in items or ():
        if is_container(item):
            yield from iter_fields(item["items"])
        elif isinstance(item, str):
            yield {"name": item}
        elif isinstance(item, dict):
            field = dict(item)
            if field.pop("disabled", False):
                field["read_only"] = True
            yield field
        else:
            raise ConfigurationError(f"Cannot build a form field from {item!r}")


def parse_data(data: Any) -> dict[str, Any]:
    """Submitted values, either a dict or its JSON encoding."""
    if data is None:
        return {}
    if isinstance(data, str):
        data = json.loads(data)
    if not isinstance(data, dict):
        raise ConfigurationError("Form data must be an object")
    return data


class FormPanel(Component):
    """Form for one record (or for plain values when there is no model)."""

    default_config = {
        "model": None,
        "items": [],
        "record_id": None,
        "record_values": {},
        "scope": None,
        "strong_default_attrs": {},
        "prohibit_create": False,
        "prohibit_update": False,
    }

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._fields: list[ColumnDescriptor] | None = None

    @property
    def model(self) -> type | None:
        ref = self.config.get("model")
        return resolve_model(ref) if ref is not None else None

    def items(self) -> list[Any]:
        return list(self.config.get("items") or self.config.get("fields") or [])

    def fields(self) -> list[ColumnDescriptor]:
        """Resolved fields, in item order."""
        if self._fields is None:
            specs = list(iter_fields(self.items()))
            if self.model is not None:
                builder = ColumnBuilder(
                    localizer=self.context.localizer,
                    max_association_depth=self.context.max_association_depth,
                )
                self._fields = builder.build(self.model, specs)
            else:
                self._fields = [self._plain_field(spec) for spec in specs]
        return self._fields

    def _plain_field(self, spec: dict[str, Any]) -> ColumnDescriptor:
        name = spec["name"]
        options = {key: value for key, value in spec.items() if key not in _COLUMN_KEYS | {"name", "attr_type"}}
        return ColumnDescriptor(
            name=name,
            label=spec.get("label") or humanize(name),
            label_key=f"basepack.form_panel.fields.{name}",
            attr_type=AttrType(spec.get("attr_type", AttrType.STRING)),
            editable=not spec.get("read_only", False),
            filterable=False,
            sortable=False,
            default_value=spec.get("default_value"),
            **options,
        )

    def record_service(self) -> RecordService:
        if self.model is None:
            raise ConfigurationError(f"{self.global_id} has no model")
        return RecordService(
            self.context.repository_factory(self.context.session, self.model),
            self.fields(),
            permissions=ConfigPermissions(self.config, self.context.permissions),
            strong_default_attrs=self.config.get("strong_default_attrs"),
            context={"component": self.global_id, "user": self.context.user_key},
            base_scope=self.config.get("scope"),
        )

    # =========================================================================
    # Values
    # =========================================================================

    async def record_values(self, record_id: Any = None) -> dict[str, Any]:
        """
        Values to show in the form.

        For a record: editing values (foreign keys for association fields),
        with display values under `_meta`. Otherwise the configured initial
        values.
        """
        record_id = record_id if record_id is not None else self.config.get("record_id")
        if self.model is None or record_id is None:
            defaults = {field.name: field.default_value for field in self.fields() if field.default_value is not None}
            return {**defaults, **(self.config.get("record_values") or {})}

        service = self.record_service()
        record = await service.find(record_id)
        if record is None:
            raise NotFoundError(self.model.__name__, record_id)
        return service.serialize(record)

    def _public_items(self, items: Iterable[Any], by_name: dict[str, ColumnDescriptor]) -> list[Any]:
        public = []
        for item in items:
            if is_container(item):
                container = {key: value for key, value in item.items() if key != "items"}
                container["items"] = self._public_items(item["items"], by_name)
                public.append(container)
            else:
                name = item if isinstance(item, str) else item["name"]
                public.append(by_name[name].to_public())
        return public

    async def render(self) -> dict[str, Any]:
        payload = await super().render()
        by_name = {field.name: field for field in self.fields()}
        payload["items"] = self._public_items(self.items(), by_name)
        payload["values"] = await self.record_values()
        if self.model is not None:
            payload["model"] = self.model.__name__
            payload["pri"] = entity_metadata(self.model).primary_key
        return payload

    # =========================================================================
    # Endpoints
    # =========================================================================

    @endpoint("load_values")
    async def _load_values(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            return {"success": True, "values": await self.record_values(params.get("record_id"))}
        except NotFoundError:
            return {"success": False, "error": "not_found"}

    @endpoint("submit")
    async def _submit(self, params: dict[str, Any]) -> dict[str, Any]:
        """Create or update the record; forms without a model call on_submit."""
        data = parse_data(params.get("data"))
        if self.model is None:
            return await self.on_submit(data)

        service = self.record_service()
        pk = entity_metadata(self.model).primary_key
        record_id = data.pop(pk, None) or self.config.get("record_id")
        if record_id is None:
            result = await service.create(data)
        else:
            result = await service.update(record_id, data)
        return result.model_dump()

    async def on_submit(self, data: dict[str, Any]) -> dict[str, Any]:
        """Handle values of a form without a model; return feedback for the user."""
        logger.info(f"Form {self.global_id} submitted {sorted(data)}")
        return {"success": True, "values": data}


class MultiEditForm(FormPanel):
    """Applies the filled-in fields to every selected record."""

    @endpoint("submit")
    async def _submit(self, params: dict[str, Any]) -> dict[str, Any]:
        data = parse_data(params.get("data"))
        values = {name: value for name, value in data.items() if value not in (None, "")}
        ids = params.get("ids") or []
        results = await self.record_service().update_many((record_id, values) for record_id in ids)
        logger.info(f"Multi-edit on {len(ids)} records of {self.model.__name__}: {sorted(values)}")
        return {
            "success": all(result.success for result in results),
            "results": [result.model_dump() for result in results],
        }
