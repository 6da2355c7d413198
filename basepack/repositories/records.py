"""
Record Repository

Executes grid query plans and persists records for a component-bound model.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select

from basepack.repositories.base import BaseRepository, ModelT
from basepack.services.scope_translator import QueryPlan

logger = logging.getLogger(__name__)


class RecordRepository(BaseRepository[ModelT]):
    """Repository for the records shown in a grid or form."""

    async def fetch(self, plan: QueryPlan) -> tuple[list[ModelT], int | None]:
        """
        Run a query plan.

        Returns:
            Records and the total count (None when the plan is not paginated)
        """
        total = None
        if plan.count_statement is not None:
            count_result = await self.session.execute(plan.count_statement)
            total = count_result.scalar() or 0

        result = await self.session.execute(plan.statement)
        records = list(result.scalars().all())
        return records, total

    async def find(self, id: Any, options: list[Any] | None = None) -> ModelT | None:
        """Get a record by primary key with optional loader options."""
        return await self.get_by_id(id, options=options)

    async def find_in(self, plan: QueryPlan, id: Any) -> ModelT | None:
        """
        Get a record by primary key within a query plan.

        Returns None when the record exists but falls outside the plan's
        constraints.
        """
        mapper = sa_inspect(self.model)
        pk = mapper.primary_key[0]
        result = await self.session.execute(plan.statement.where(pk == self._coerce_id(pk, id)))
        return result.scalars().first()

    async def reload(self, id: Any, options: list[Any] | None = None) -> ModelT | None:
        """Re-read a record from the database, applying loader options."""
        mapper = sa_inspect(self.model)
        query = (
            select(self.model)
            .where(mapper.primary_key[0] == id)
            .options(*(options or []))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def _coerce_id(pk: Any, id: Any) -> Any:
        # ids arrive as strings from the renderer
        if isinstance(id, str) and id.isdigit() and pk.type.python_type is int:
            return int(id)
        return id

    def build(self, **attributes: Any) -> ModelT:
        """New transient record."""
        return self.model(**attributes)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """
        Isolate one record's changes.

        A failure inside rolls back only this block, so sibling records of a
        batch keep their outcome.
        """
        async with self.session.begin_nested():
            yield
