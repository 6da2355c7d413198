"""
Unit tests for the error taxonomy.
"""

import pytest

from basepack.core.exceptions import (
    AssociationDepthError,
    BasepackError,
    ConfigurationError,
    PermissionDeniedError,
    UnknownComponentError,
    ValidationError,
)


class TestExceptions:

    def test_configuration_family(self):
        assert issubclass(AssociationDepthError, ConfigurationError)
        assert issubclass(UnknownComponentError, ConfigurationError)
        assert issubclass(ConfigurationError, BasepackError)

    def test_permission_denied_is_builtin_permission_error(self):
        with pytest.raises(PermissionError):
            raise PermissionDeniedError("delete", "User")

    def test_validation_error_summary(self):
        error = ValidationError({"email": ["can't be blank"], "base": ["taken"]})

        assert error.errors["base"] == ["taken"]
        assert str(error) == "Validation failed (email: can't be blank; base: taken)"
