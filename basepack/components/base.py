"""
Component base class.

A component is a configurable unit with its own resolved config, actions,
endpoints and (lazily resolved) child components. Components are built per
request and share one ComponentContext holding the request's collaborators.

Children are declared with @child on a method returning the child's config:

    class MyGrid(GridPanel):
        @child
        def details(self):
            return {"class_name": "FormPanel", "lazy_loading": True, "model": self.config["model"]}
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy.ext.asyncio import AsyncSession

from basepack.core.config_resolver import ConfigResolver
from basepack.core.deep_merge import deep_merge
from basepack.core.exceptions import UnknownComponentError
from basepack.core.localization import CatalogLocalizer, Localizer
from basepack.core.permissions import PermissionPolicy
from basepack.core.state_store import ComponentStateStore, MemoryStateStore
from basepack.models.contracts.components import ComponentState
from basepack.repositories.records import RecordRepository

if TYPE_CHECKING:
    from basepack.components.registry import ComponentNode, ComponentRegistry

logger = logging.getLogger(__name__)

# Separates parent and child names in component identities
ID_DELIMITER = "__"


@dataclass
class ComponentContext:
    """Request-scoped collaborators shared by a component tree."""

    registry: "ComponentRegistry"
    session: AsyncSession | None = None
    state_store: ComponentStateStore = field(default_factory=MemoryStateStore)
    permissions: PermissionPolicy | None = None
    localizer: Localizer = field(default_factory=CatalogLocalizer)
    user_key: str = "anonymous"
    max_association_depth: int = 4
    default_rows_per_page: int = 30
    repository_factory: Callable[..., RecordRepository] = RecordRepository


def child(func: Callable[..., Any]) -> Callable[..., Any]:
    """Declare a child component; the method (plain or async) returns its config template."""
    func.__basepack_child__ = True
    return func


def endpoint(name: str) -> Callable:
    """Expose a method to the renderer under `name`; it receives the params dict."""

    def decorator(func: Callable) -> Callable:
        func.__basepack_endpoint__ = name
        return func

    return decorator


class Component:
    """
    Base class of all components.

    Configuration layers, lowest first: merged `default_config` of the class
    hierarchy, capability flags of the registered type, the `configuration()`
    preset, the caller's config, then composition overrides.
    """

    default_config: ClassVar[dict[str, Any]] = {}

    # config the server acts on but never sends to the renderer
    server_config_keys: ClassVar[frozenset[str]] = frozenset({"scope", "strong_default_attrs"})

    _child_names: ClassVar[tuple[str, ...]] = ()
    _endpoints: ClassVar[dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        children = dict.fromkeys(cls._child_names)
        endpoints = dict(cls._endpoints)
        for attr_name, value in vars(cls).items():
            if getattr(value, "__basepack_child__", False):
                children[attr_name] = None
            endpoint_name = getattr(value, "__basepack_endpoint__", None)
            if endpoint_name:
                endpoints[endpoint_name] = attr_name
        cls._child_names = tuple(children)
        cls._endpoints = endpoints

    def __init__(
        self,
        context: ComponentContext,
        name: str,
        config: Mapping[str, Any] | None = None,
        *overrides: Mapping[str, Any] | None,
        parent: "Component | None" = None,
        state: ComponentState | None = None,
    ):
        self.context = context
        self.name = name
        self.parent = parent
        self.state = state or ComponentState()
        self.capabilities = context.registry.capabilities_for(type(self))

        resolver = ConfigResolver(self.capabilities)
        self.config = resolver.resolve(
            self.class_defaults(),
            deep_merge(self.configuration(), config or {}),
            *overrides,
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def class_defaults(cls) -> dict[str, Any]:
        """default_config merged down the class hierarchy."""
        layers = [
            klass.__dict__["default_config"]
            for klass in reversed(cls.__mro__)
            if "default_config" in klass.__dict__
        ]
        return deep_merge({}, *layers)

    def configuration(self) -> dict[str, Any]:
        """Per-class preset applied at instance level; override in subclasses."""
        return {}

    @property
    def global_id(self) -> str:
        """Stable identity: parent identity plus own name."""
        if self.parent is None:
            return self.name
        return f"{self.parent.global_id}{ID_DELIMITER}{self.name}"

    @property
    def persistent(self) -> bool:
        return bool(self.config.get("persistence") or self.config.get("persistent_config"))

    @property
    def class_name(self) -> str:
        return self.context.registry.type_name(type(self))

    # =========================================================================
    # Children
    # =========================================================================

    def child_names(self) -> list[str]:
        return [name for name in self._child_names if self.child_available(name)]

    def child_available(self, name: str) -> bool:
        """Whether a declared child is wired in for this instance."""
        return True

    async def child_config(self, name: str) -> dict[str, Any]:
        """Config template of a declared child."""
        if name not in self._child_names or not self.child_available(name):
            raise UnknownComponentError(f"{self.global_id}{ID_DELIMITER}{name}")
        config = getattr(self, name)()
        if inspect.isawaitable(config):
            config = await config
        return config

    async def resolve_child(
        self,
        name: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> "ComponentNode":
        """
        Resolve a child into a node without instantiating it.

        Overrides (e.g. a record id for an edit form) are deep-merged into the
        child's config; persisted state is loaded for persistent children.
        """
        from basepack.components.registry import ComponentNode

        node = ComponentNode.from_config(
            self.context.registry,
            name=name,
            config=deep_merge(await self.child_config(name), overrides),
            parent=self,
        )
        await node.load_state(self.context)
        return node

    async def resolve_path(self, path: str) -> "Component":
        """Instantiate a descendant by its relative identity ("add_form__form")."""
        component: Component = self
        for name in path.split(ID_DELIMITER):
            node = await component.resolve_child(name)
            component = node.instantiate(self.context)
        return component

    async def eager_children(self) -> dict[str, dict[str, Any]]:
        """Rendered configs of children that are not lazy-loading."""
        rendered = {}
        for name in self.child_names():
            node = await self.resolve_child(name)
            if not node.lazy_loading:
                rendered[name] = await node.instantiate(self.context).render()
        return rendered

    # =========================================================================
    # State
    # =========================================================================

    async def save_state(self, **changes: Any) -> bool:
        """
        Propose a state update to the state store.

        Returns False (and stores nothing) when persistence is off.
        """
        if not self.persistent:
            return False
        self.state = self.state.model_copy(update=changes)
        await self.context.state_store.save(self.context.user_key, self.global_id, self.state)
        logger.info(f"Saved state of {self.global_id}: {sorted(changes)}")
        return True

    # =========================================================================
    # Rendering and endpoints
    # =========================================================================

    def t(self, key: str, default: str | None = None, **params: Any) -> str:
        return self.context.localizer.translate(key, default, **params)

    def actions(self) -> dict[str, dict[str, Any]]:
        return {}

    async def render(self) -> dict[str, Any]:
        """Configuration handed to the front-end renderer."""
        return {
            **{
                key: value
                for key, value in self.config.items()
                if key not in self.server_config_keys and _is_plain(value)
            },
            "id": self.global_id,
            "name": self.name,
            "class_name": self.class_name,
            "actions": self.actions(),
            "components": await self.eager_children(),
        }

    async def call_endpoint(self, name: str, params: Mapping[str, Any]) -> Any:
        """Dispatch a renderer call to a method declared with @endpoint."""
        attr_name = self._endpoints.get(name)
        if attr_name is None:
            raise UnknownComponentError(f"{self.global_id}.{name}")
        logger.debug(f"Endpoint {self.global_id}.{name}")
        return await getattr(self, attr_name)(dict(params))


def _is_plain(value: Any) -> bool:
    """JSON-shaped config value (model classes, callables and records are not)."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_plain(item) for item in value)
    if isinstance(value, Mapping):
        return all(isinstance(key, str) and _is_plain(item) for key, item in value.items())
    return False
