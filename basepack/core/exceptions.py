"""
Core Exceptions

Error taxonomy for basepack components.

Configuration errors (ConfigurationError and subclasses) are programmer
errors: raised immediately, never retried, never shown to end users.
ValidationError, PermissionDeniedError and NotFoundError are expected
outcomes; the service layer turns them into per-record results.
"""


class BasepackError(Exception):
    """Base class for all basepack errors."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(self.message)


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigurationError(BasepackError):
    """Invalid component or column configuration."""


class ConfigConflictError(ConfigurationError):
    """
    Raised when a caller-provided config layer redefines a locked option.

    Locked options come from class capabilities, e.g. enabling column filters
    on a component type registered without column filter support.
    """

    def __init__(self, option: str, locked_value: object, requested: object):
        self.option = option
        self.locked_value = locked_value
        self.requested = requested
        super().__init__(
            f"Option '{option}' is fixed to {locked_value!r} by component "
            f"capabilities; got {requested!r}"
        )


class UnknownAttributeError(ConfigurationError):
    """A column references an attribute the entity does not have."""

    def __init__(self, entity: str, attribute: str):
        self.entity = entity
        self.attribute = attribute
        super().__init__(f"Unknown attribute '{attribute}' on {entity}")


class UnknownAssociationError(ConfigurationError):
    """A column references an association the entity does not declare."""

    def __init__(self, entity: str, association: str):
        self.entity = entity
        self.association = association
        super().__init__(f"Unknown association '{association}' on {entity}")


class AssociationDepthError(ConfigurationError):
    """An association column chains more links than allowed."""

    def __init__(self, column: str, max_depth: int):
        self.column = column
        self.max_depth = max_depth
        super().__init__(
            f"Column '{column}' exceeds the maximum association depth of {max_depth}"
        )


class InvalidSortColumnError(ConfigurationError):
    """Sorting was requested on a column that cannot be ordered."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Cannot sort by column '{column}'")


class InvalidFilterError(ConfigurationError):
    """A filter or search condition uses an unsupported operator or column."""


class UnknownComponentError(ConfigurationError):
    """A component path or child name could not be resolved."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown component '{name}'")


# =============================================================================
# Recoverable outcomes
# =============================================================================


class ValidationError(BasepackError):
    """
    Record failed model-level validation.

    Carries per-field messages; the "base" key holds record-wide messages.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        summary = "; ".join(
            f"{field}: {', '.join(messages)}" for field, messages in errors.items()
        )
        super().__init__(f"Validation failed ({summary})")


class PermissionDeniedError(BasepackError, PermissionError):
    """
    Operation is not permitted for this component instance.

    Subclasses the builtin PermissionError so callers may catch either.
    """

    def __init__(self, operation: str, entity: str):
        self.operation = operation
        self.entity = entity
        super().__init__(f"{operation} is not permitted on {entity}")


class NotFoundError(BasepackError):
    """A record id does not exist within the component's scope."""

    def __init__(self, entity: str, record_id: object):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} with id {record_id!r} not found")
