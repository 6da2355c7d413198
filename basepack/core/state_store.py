"""
Persisted UI state stores.

Per-user, per-component state (column order, widths, hidden columns,
filters, page) lives outside the request. Every store implements the same
two calls, each a single small last-write-wins operation:

    state = await store.load(user_key, component_id)
    await store.save(user_key, component_id, state)
"""

import json
import logging
from typing import Protocol

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from basepack.models.contracts.components import ComponentState
from basepack.repositories.component_state import ComponentStateRepository

logger = logging.getLogger(__name__)

# Redis key prefix
STATE_KEY_PREFIX = "basepack:state:"


class ComponentStateStore(Protocol):
    """Persistence collaborator for component UI state."""

    async def load(self, user_key: str, component_id: str) -> ComponentState: ...

    async def save(self, user_key: str, component_id: str, state: ComponentState) -> None: ...


class MemoryStateStore:
    """Process-local store for development and tests."""

    def __init__(self):
        self._states: dict[tuple[str, str], str] = {}

    async def load(self, user_key: str, component_id: str) -> ComponentState:
        raw = self._states.get((user_key, component_id))
        if raw is None:
            return ComponentState()
        return ComponentState.model_validate_json(raw)

    async def save(self, user_key: str, component_id: str, state: ComponentState) -> None:
        self._states[(user_key, component_id)] = state.model_dump_json()


class RedisStateStore:
    """
    Redis-backed store.

    Values are JSON documents under basepack:state:{user}:{component}, with a
    TTL refreshed on every save.
    """

    def __init__(self, redis_url: str, ttl_seconds: int | None = None):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    @staticmethod
    def _key(user_key: str, component_id: str) -> str:
        return f"{STATE_KEY_PREFIX}{user_key}:{component_id}"

    async def load(self, user_key: str, component_id: str) -> ComponentState:
        r = await self._get_redis()
        raw = await r.get(self._key(user_key, component_id))
        if raw is None:
            return ComponentState()
        try:
            return ComponentState.model_validate(json.loads(raw))
        except ValueError as e:
            logger.warning(f"Discarding unreadable state for {component_id}: {e}")
            return ComponentState()

    async def save(self, user_key: str, component_id: str, state: ComponentState) -> None:
        r = await self._get_redis()
        await r.set(
            self._key(user_key, component_id),
            state.model_dump_json(),
            ex=self.ttl_seconds,
        )
        logger.debug(f"Saved state for {component_id} ({user_key})")

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class DatabaseStateStore:
    """Store backed by the component_states table of the request session."""

    def __init__(self, session: AsyncSession):
        self.repository = ComponentStateRepository(session)

    async def load(self, user_key: str, component_id: str) -> ComponentState:
        stored = await self.repository.get_state(user_key, component_id)
        if stored is None:
            return ComponentState()
        return ComponentState.model_validate(stored)

    async def save(self, user_key: str, component_id: str, state: ComponentState) -> None:
        await self.repository.put_state(user_key, component_id, state.model_dump(mode="json"))
