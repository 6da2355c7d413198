"""
Shared fixtures.

Unit tests run without a database: ORM models are introspected and
instantiated in memory, queries are compiled rather than executed, and
repositories are replaced by in-memory fakes where records are read or
written. Integration tests bring their own SQLite session (see
tests/integration/conftest.py).
"""

import pytest

from basepack.components import default_registry
from basepack.components.base import ComponentContext
from basepack.config import Settings
from basepack.core.state_store import MemoryStateStore
from tests.helpers.fakes import FakeRecordRepository, RepositoryFactory
from tests.helpers.models import Role, User


@pytest.fixture
def settings():
    """Settings with every capability available."""
    return Settings(environment="testing", state_store="memory")


@pytest.fixture
def registry(settings):
    return default_registry(settings)


@pytest.fixture
def roles():
    return [Role(id=1, name="admin"), Role(id=2, name="writer")]


@pytest.fixture
def users(roles):
    admin, _ = roles
    return [
        User(id=1, email="ann@example.com", first_name="Ann", last_name="Lee", role_id=1, role=admin),
        User(id=2, email="bob@example.com", first_name="Bob", last_name="Ray", role_id=None),
        User(id=3, email="cid@example.com", first_name="Cid", last_name="Moe", role_id=1, role=admin),
    ]


@pytest.fixture
def user_repository(users):
    return FakeRecordRepository(User, users)


@pytest.fixture
def state_store():
    return MemoryStateStore()


@pytest.fixture
def context(registry, user_repository, state_store):
    """ComponentContext over in-memory users."""
    return ComponentContext(
        registry=registry,
        state_store=state_store,
        user_key="tester",
        repository_factory=RepositoryFactory(user_repository),
    )
