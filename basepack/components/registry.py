"""
Component registry and composition tree nodes.

Component types are registered once at start-up together with their static
capabilities. Root components are mounted by name; everything below a root
is resolved on demand through ComponentNodes, which hold a class and a config
but build nothing until instantiate() is called.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from basepack.components.base import ID_DELIMITER, Component, ComponentContext
from basepack.core.config_resolver import ComponentCapabilities
from basepack.core.deep_merge import deep_merge
from basepack.core.exceptions import ConfigurationError, UnknownComponentError
from basepack.models.contracts.components import ComponentState

logger = logging.getLogger(__name__)


@dataclass
class ComponentNode:
    """
    Deferred component: class plus config, resolved but not built.

    Lazy-loading nodes are only instantiated when explicitly requested by
    identity; building one runs the child's config resolution.
    """

    identity: str
    name: str
    component_class: type[Component]
    config: dict[str, Any]
    lazy_loading: bool = False
    persistent: bool = False
    parent: Component | None = None
    state: ComponentState | None = field(default=None, repr=False)

    @classmethod
    def from_config(
        cls,
        registry: "ComponentRegistry",
        name: str,
        config: Mapping[str, Any],
        parent: Component | None = None,
    ) -> "ComponentNode":
        """Split node options (class_name, lazy_loading) from the child's config."""
        config = dict(config)
        class_ref = config.pop("class_name", None)
        if class_ref is None:
            raise ConfigurationError(f"Component '{name}' has no class_name")
        lazy_loading = bool(config.pop("lazy_loading", False))
        identity = name if parent is None else f"{parent.global_id}{ID_DELIMITER}{name}"
        return cls(
            identity=identity,
            name=name,
            component_class=registry.component_class(class_ref),
            config=config,
            lazy_loading=lazy_loading,
            persistent=bool(config.get("persistence") or config.get("persistent_config")),
            parent=parent,
        )

    async def load_state(self, context: ComponentContext) -> None:
        """Read persisted UI state for persistent nodes."""
        if self.persistent:
            self.state = await context.state_store.load(context.user_key, self.identity)

    def instantiate(
        self,
        context: ComponentContext,
        overrides: Mapping[str, Any] | None = None,
    ) -> Component:
        """Build the component (runs its config resolution)."""
        logger.debug(f"Instantiating {self.identity} ({self.component_class.__name__})")
        return self.component_class(
            context,
            self.name,
            self.config,
            overrides,
            parent=self.parent,
            state=self.state,
        )


class ComponentRegistry:
    """
    Registered component types and mounted root components.

    Capabilities are attached per type at registration; subclasses that are
    not registered themselves inherit the capabilities of their nearest
    registered ancestor.
    """

    def __init__(self, capabilities: ComponentCapabilities | None = None):
        self.default_capabilities = capabilities or ComponentCapabilities()
        self._types: dict[str, type[Component]] = {}
        self._capabilities: dict[type[Component], ComponentCapabilities] = {}
        self._roots: dict[str, dict[str, Any]] = {}

    # =========================================================================
    # Types
    # =========================================================================

    def register(
        self,
        component_class: type[Component],
        capabilities: ComponentCapabilities | None = None,
        name: str | None = None,
    ) -> type[Component]:
        """Register a component type under its class name (or `name`)."""
        type_name = name or component_class.__name__
        self._types[type_name] = component_class
        self._capabilities[component_class] = capabilities or self.default_capabilities
        logger.debug(f"Registered component type {type_name}")
        return component_class

    def component_class(self, ref: str | type[Component]) -> type[Component]:
        """Resolve a class reference (registered name or class)."""
        if isinstance(ref, type):
            if not issubclass(ref, Component):
                raise ConfigurationError(f"{ref.__name__} is not a component")
            return ref
        try:
            return self._types[ref]
        except KeyError:
            raise UnknownComponentError(ref)

    def type_name(self, component_class: type[Component]) -> str:
        for name, registered in self._types.items():
            if registered is component_class:
                return name
        return component_class.__name__

    def capabilities_for(self, component_class: type[Component]) -> ComponentCapabilities:
        for klass in component_class.__mro__:
            if klass in self._capabilities:
                return self._capabilities[klass]
        return self.default_capabilities

    # =========================================================================
    # Roots
    # =========================================================================

    def mount(self, name: str, class_name: str | type[Component], **config: Any) -> None:
        """Declare a root component instance available to the renderer."""
        if ID_DELIMITER in name:
            raise ConfigurationError(f"Root component name '{name}' may not contain '{ID_DELIMITER}'")
        self.component_class(class_name)
        self._roots[name] = {"class_name": class_name, **config}

    def root_names(self) -> list[str]:
        return list(self._roots)

    async def resolve_root(
        self,
        name: str,
        context: ComponentContext,
        overrides: Mapping[str, Any] | None = None,
    ) -> ComponentNode:
        """Node for a mounted root, with persisted state loaded."""
        if name not in self._roots:
            raise UnknownComponentError(name)
        node = ComponentNode.from_config(self, name, deep_merge(self._roots[name], overrides))
        await node.load_state(context)
        return node

    async def resolve_path(self, path: str, context: ComponentContext) -> Component:
        """
        Instantiate the component at a global identity.

            await registry.resolve_path("users__edit_form__form", context)
        """
        root_name, _, rest = path.partition(ID_DELIMITER)
        component = (await self.resolve_root(root_name, context)).instantiate(context)
        if rest:
            component = await component.resolve_path(rest)
        return component
