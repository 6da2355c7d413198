"""
Components: grid, forms, windows, and the registry that builds them.
"""

from basepack.components.base import Component, ComponentContext, child, endpoint
from basepack.components.form_panel import FormPanel, MultiEditForm
from basepack.components.grid_panel import GridPanel
from basepack.components.record_form_window import RecordFormWindow
from basepack.components.registry import ComponentNode, ComponentRegistry
from basepack.components.search_window import SearchWindow
from basepack.core.config_resolver import ComponentCapabilities

BUILTIN_COMPONENTS = (GridPanel, FormPanel, MultiEditForm, RecordFormWindow, SearchWindow)


def default_registry(settings=None) -> ComponentRegistry:
    """Registry with the built-in component types and capabilities from settings."""
    if settings is None:
        from basepack.config import get_settings

        settings = get_settings()
    registry = ComponentRegistry(ComponentCapabilities.from_settings(settings))
    for component_class in BUILTIN_COMPONENTS:
        registry.register(component_class)
    return registry


__all__ = [
    "BUILTIN_COMPONENTS",
    "Component",
    "ComponentContext",
    "ComponentNode",
    "ComponentRegistry",
    "FormPanel",
    "GridPanel",
    "MultiEditForm",
    "RecordFormWindow",
    "SearchWindow",
    "child",
    "default_registry",
    "endpoint",
]
