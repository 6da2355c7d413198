"""
Permission collaborator.

Consulted by the record service before every create, update and delete.
Hosts plug in their own policy; ConfigPermissions derives the answer from the
component's prohibit_* options.
"""

from collections.abc import Mapping
from typing import Any, Protocol


class PermissionPolicy(Protocol):
    """Decides whether CRUD operations are allowed for an entity type."""

    def can_create(self, model: type, context: Mapping[str, Any]) -> bool: ...

    def can_update(self, model: type, context: Mapping[str, Any]) -> bool: ...

    def can_delete(self, model: type, context: Mapping[str, Any]) -> bool: ...


class AllowAll:
    """Policy that permits everything."""

    def can_create(self, model: type, context: Mapping[str, Any]) -> bool:
        return True

    def can_update(self, model: type, context: Mapping[str, Any]) -> bool:
        return True

    def can_delete(self, model: type, context: Mapping[str, Any]) -> bool:
        return True


class ConfigPermissions:
    """
    Policy driven by component configuration.

    Honors prohibit_create / prohibit_update / prohibit_delete (and
    prohibit_read is left to the query scope). A wrapped host policy, when
    given, must also agree.
    """

    def __init__(self, config: Mapping[str, Any], delegate: PermissionPolicy | None = None):
        self.config = config
        self.delegate = delegate or AllowAll()

    def can_create(self, model: type, context: Mapping[str, Any]) -> bool:
        return not self.config.get("prohibit_create") and self.delegate.can_create(
            model, context
        )

    def can_update(self, model: type, context: Mapping[str, Any]) -> bool:
        return not self.config.get("prohibit_update") and self.delegate.can_update(
            model, context
        )

    def can_delete(self, model: type, context: Mapping[str, Any]) -> bool:
        return not self.config.get("prohibit_delete") and self.delegate.can_delete(
            model, context
        )
