"""
Component State Repository

Database storage for persisted component UI state.
"""

import logging
from typing import Any

from sqlalchemy import select

from basepack.models.orm.component_state import ComponentStateRecord
from basepack.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ComponentStateRepository(BaseRepository[ComponentStateRecord]):
    """Repository for component_states rows."""

    model = ComponentStateRecord

    async def get_state(self, user_key: str, component_id: str) -> dict[str, Any] | None:
        """Stored state document, if any."""
        query = select(self.model).where(
            self.model.user_key == user_key,
            self.model.component_id == component_id,
        )
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        return dict(record.state) if record else None

    async def put_state(self, user_key: str, component_id: str, state: dict[str, Any]) -> None:
        """Insert or replace a state document (last write wins)."""
        record = await self.session.get(self.model, (user_key, component_id))
        if record is None:
            record = self.model(user_key=user_key, component_id=component_id, state=state)
            self.session.add(record)
        else:
            record.state = state
        await self.session.flush()
        logger.debug(f"Stored state for {component_id} ({user_key})")
