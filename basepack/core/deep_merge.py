"""
Deep merge of configuration maps.

One total merge algorithm shared by the config resolver and the component
tree:

- nested dicts merge key-wise, recursively
- a plain list (or any other value) in the override replaces the base value
- an Append marker in the override extends the base list instead

The algorithm is associative, so merging layers one at a time gives the same
result as merging them all at once.
"""

from collections.abc import Iterable, Mapping
from typing import Any


class Append(tuple):
    """
    List override that appends to the base list instead of replacing it.

        deep_merge({"tools": ["refresh"]}, {"tools": Append(["gear"])})
        # {"tools": ["refresh", "gear"]}
    """

    def __new__(cls, items: Iterable[Any] = ()):
        return super().__new__(cls, items)

    def __repr__(self) -> str:
        return f"Append({list(self)!r})"


def _copy(value: Any) -> Any:
    """Fresh copy of the dicts and lists inside a config value."""
    if isinstance(value, Mapping):
        return deep_merge({}, value)
    if isinstance(value, Append):
        return Append(_copy(item) for item in value)
    if isinstance(value, list):
        return [_copy(item) for item in value]
    if type(value) is tuple:
        return tuple(_copy(item) for item in value)
    return value


def _merge_value(base: Any, override: Any) -> Any:
    if isinstance(override, Mapping) and isinstance(base, Mapping):
        return deep_merge(base, override)
    if isinstance(override, Append):
        if isinstance(base, Append):
            return Append(_copy(item) for item in (*base, *override))
        if isinstance(base, (list, tuple)):
            return [_copy(item) for item in (*base, *override)]
    return _copy(override)


def deep_merge(base: Mapping[str, Any], *overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Merge override maps atop base, later overrides winning.

    Inputs are never mutated, and the dicts and lists in the result are fresh
    copies, so a resolved config shares no mutable value with its layers.
    None overrides are skipped so callers can pass optional config keys
    directly (``deep_merge(defaults, config.get("add_form_config"))``).
    """
    merged: dict[str, Any] = {}
    for key, value in base.items():
        merged[key] = _copy(value)

    for override in overrides:
        if not override:
            continue
        for key, value in override.items():
            if key in merged:
                merged[key] = _merge_value(merged[key], value)
            else:
                merged[key] = _merge_value(None, value)
    return merged


def materialize(config: Mapping[str, Any]) -> dict[str, Any]:
    """Replace leftover Append markers (with no base list) by plain lists."""
    result: dict[str, Any] = {}
    for key, value in config.items():
        if isinstance(value, Mapping):
            result[key] = materialize(value)
        elif isinstance(value, Append):
            result[key] = list(value)
        else:
            result[key] = value
    return result
