"""
Localization collaborator.

Components hand out message keys (plus a fallback); the localizer owns the
text. CatalogLocalizer is a dictionary-backed implementation with the
built-in English strings.
"""

from collections.abc import Mapping
from typing import Any, Protocol

ACTION_KEY_PREFIX = "basepack.grid_panel.actions"
ERROR_KEY_PREFIX = "basepack.errors"

DEFAULT_CATALOG: dict[str, str] = {
    f"{ACTION_KEY_PREFIX}.add": "Add",
    f"{ACTION_KEY_PREFIX}.edit": "Edit",
    f"{ACTION_KEY_PREFIX}.del": "Delete",
    f"{ACTION_KEY_PREFIX}.apply": "Apply",
    f"{ACTION_KEY_PREFIX}.add_in_form": "Add in form",
    f"{ACTION_KEY_PREFIX}.edit_in_form": "Edit in form",
    f"{ACTION_KEY_PREFIX}.search": "Search",
    f"{ACTION_KEY_PREFIX}.export": "Export",
    f"{ACTION_KEY_PREFIX}.ok": "OK",
    f"{ACTION_KEY_PREFIX}.cancel": "Cancel",
    "basepack.grid_panel.add_form_title": "Add {model}",
    "basepack.grid_panel.edit_form_title": "Edit {model}",
    "basepack.grid_panel.multi_edit_form_title": "Edit {models}",
    "basepack.grid_panel.search_title": "Search {models}",
    "basepack.grid_panel.are_you_sure": "Are you sure?",
    "basepack.grid_panel.confirmation": "Confirmation",
    f"{ERROR_KEY_PREFIX}.blank": "can't be blank",
    f"{ERROR_KEY_PREFIX}.not_found": "record not found",
    f"{ERROR_KEY_PREFIX}.permission_denied": "operation not permitted",
    f"{ERROR_KEY_PREFIX}.invalid": "is invalid",
}


class Localizer(Protocol):
    """Resolves display text by key."""

    def translate(self, key: str, default: str | None = None, **params: Any) -> str: ...


class CatalogLocalizer:
    """Localizer backed by a flat key -> template mapping."""

    def __init__(self, catalog: Mapping[str, str] | None = None):
        self.catalog = {**DEFAULT_CATALOG, **(catalog or {})}

    def translate(self, key: str, default: str | None = None, **params: Any) -> str:
        template = self.catalog.get(key, default if default is not None else key)
        if params:
            try:
                return template.format(**params)
            except (KeyError, IndexError):
                return template
        return template


def humanize(name: str) -> str:
    """Fallback label for an attribute or column name ("role__name" -> "Role name")."""
    words = name.replace("__", " ").replace("_", " ").strip()
    if words.endswith(" id"):
        words = words[:-3]
    return words[:1].upper() + words[1:]
