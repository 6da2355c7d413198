"""
Configuration resolver for component instances.

Resolves the effective configuration of a component from its layers, lowest
to highest precedence:

1. class defaults (merged down the class hierarchy)
2. capability flags of the registered component type
3. caller-supplied instance config
4. deep-merge overrides from composition (a parent customizing a child)

Capabilities that are unavailable lock their option: a caller layer may
repeat the locked value but not change it.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from basepack.core.deep_merge import deep_merge, materialize
from basepack.core.exceptions import ConfigConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentCapabilities:
    """
    Static capability descriptor attached to a component type registration.

    Decided once at start-up (usually from Settings); decides which optional
    resolvers a component type wires in and which instance options it may
    enable.
    """

    column_filters_available: bool = True
    extended_search_available: bool = True
    edit_in_form_available: bool = True
    rows_reordering_available: bool = True

    # capability -> (instance option it controls, option on by default)
    OPTIONS = {
        "column_filters_available": ("enable_column_filters", True),
        "extended_search_available": ("enable_extended_search", True),
        "edit_in_form_available": ("enable_edit_in_form", True),
        "rows_reordering_available": ("enable_rows_reordering", False),
    }

    @classmethod
    def from_settings(cls, settings: Any) -> "ComponentCapabilities":
        return cls(**{f.name: getattr(settings, f.name) for f in fields(cls)})

    def is_available(self, option: str) -> bool:
        """Whether the instance option `option` is backed by a capability."""
        for name, (controlled, _) in self.OPTIONS.items():
            if controlled == option:
                return getattr(self, name)
        return True

    def feature_flags(self) -> dict[str, bool]:
        """
        Instance option defaults implied by the capabilities.

        Default-on options follow their capability; unavailable options are
        always reported off.
        """
        flags = {}
        for name, (option, default_on) in self.OPTIONS.items():
            available = getattr(self, name)
            if default_on or not available:
                flags[option] = available
        return flags

    def locked_options(self) -> dict[str, bool]:
        """Options that callers cannot turn on because support is missing."""
        return {
            option: False
            for name, (option, _) in self.OPTIONS.items()
            if not getattr(self, name)
        }


class ConfigResolver:
    """
    Resolves layered component configuration.

    Pure: resolving the same layers twice yields equal results, and inputs
    are never mutated.
    """

    def __init__(self, capabilities: ComponentCapabilities | None = None):
        self.capabilities = capabilities or ComponentCapabilities()

    def resolve(
        self,
        class_defaults: Mapping[str, Any],
        instance_config: Mapping[str, Any] | None = None,
        *override_layers: Mapping[str, Any] | None,
        feature_flags: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Merge all layers into one effective configuration.

        Args:
            class_defaults: Defaults declared on the component class
            instance_config: Caller-supplied instance configuration
            override_layers: Composition overrides, in ascending precedence
            feature_flags: Capability-derived defaults; taken from the
                registered capabilities when omitted

        Returns:
            Effective configuration map

        Raises:
            ConfigConflictError: If a caller layer changes a locked option
        """
        flags = (
            dict(feature_flags)
            if feature_flags is not None
            else self.capabilities.feature_flags()
        )
        locked = self.capabilities.locked_options()

        caller_layers = [instance_config, *override_layers]
        for layer in caller_layers:
            self._check_locked(layer, locked)

        resolved = materialize(deep_merge(class_defaults, flags, *caller_layers))
        logger.debug(f"Resolved config with keys: {sorted(resolved)}")
        return resolved

    @staticmethod
    def _check_locked(layer: Mapping[str, Any] | None, locked: dict[str, bool]) -> None:
        if not layer:
            return
        for option, locked_value in locked.items():
            if option in layer and bool(layer[option]) != locked_value:
                raise ConfigConflictError(option, locked_value, layer[option])
