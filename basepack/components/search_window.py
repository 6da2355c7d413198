"""
Extended search window.

Lists the searchable fields of a model with the operators their type
supports, and turns submitted field/operator/value triples into search
conditions for the grid's get_data endpoint.
"""

import logging
from typing import Any

from basepack.components.base import Component, endpoint
from basepack.components.form_panel import iter_fields
from basepack.components.grid_panel import resolve_model
from basepack.core.localization import ACTION_KEY_PREFIX
from basepack.models.contracts.columns import ColumnDescriptor
from basepack.models.contracts.queries import SearchCondition
from basepack.services.columns import ColumnBuilder
from basepack.services.scope_translator import operators_for, search_to_conditions

logger = logging.getLogger(__name__)


class SearchWindow(Component):
    default_config = {
        "modal": True,
        "width": "50%",
        "auto_height": True,
        "button_align": "right",
        "fbar": ["search", "cancel"],
        "fields": [],
    }

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._fields: list[ColumnDescriptor] | None = None

    @property
    def model(self) -> type:
        return resolve_model(self.config.get("model"))

    def fields(self) -> list[ColumnDescriptor]:
        """Filterable fields only."""
        if self._fields is None:
            builder = ColumnBuilder(
                localizer=self.context.localizer,
                max_association_depth=self.context.max_association_depth,
            )
            columns = builder.build(self.model, list(iter_fields(self.config.get("fields"))))
            self._fields = [column for column in columns if column.filterable and operators_for(column)]
        return self._fields

    def actions(self) -> dict[str, dict[str, Any]]:
        return {
            "search": {"text": self.t(f"{ACTION_KEY_PREFIX}.search")},
            "cancel": {"text": self.t(f"{ACTION_KEY_PREFIX}.cancel")},
        }

    async def render(self) -> dict[str, Any]:
        payload = await super().render()
        payload["fields"] = [
            {
                **field.to_public(),
                "operators": sorted(op.value for op in operators_for(field)),
            }
            for field in self.fields()
        ]
        return payload

    @endpoint("search")
    async def _search(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Validate search triples and hand them back as the grid's query.

        Raises:
            InvalidFilterError: Unknown field or unsupported operator
        """
        conditions = [SearchCondition.model_validate(c) for c in params.get("conditions") or []]
        search_to_conditions(self.fields(), conditions)
        query = [
            condition.model_dump(mode="json")
            for condition in conditions
            if condition.value not in (None, "") or condition.operator.value == "is_null"
        ]
        logger.debug(f"Search on {self.model.__name__}: {len(query)} conditions")
        return {"query": query}
