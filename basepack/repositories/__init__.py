"""
Repositories

Data access over SQLAlchemy async sessions.
"""

from basepack.repositories.base import BaseRepository
from basepack.repositories.component_state import ComponentStateRepository
from basepack.repositories.records import RecordRepository

__all__ = [
    "BaseRepository",
    "ComponentStateRepository",
    "RecordRepository",
]
