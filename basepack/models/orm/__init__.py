"""
SQLAlchemy ORM models for basepack.

Host applications declare their own models on the same Base so components can
look them up by class name.
"""

from basepack.models.orm.base import Base
from basepack.models.orm.component_state import ComponentStateRecord

__all__ = [
    "Base",
    "ComponentStateRecord",
]
