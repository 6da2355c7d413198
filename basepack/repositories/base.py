"""
Base Repository

Generic async CRUD helpers shared by all repositories.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from basepack.models.orm.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Repository with common operations for one mapped class.

    Subclasses set `model`, or pass it at construction when the class is
    only known at runtime (component-bound repositories).
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession, model: type[ModelT] | None = None):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
            model: Mapped class, overriding the class attribute
        """
        self.session = session
        if model is not None:
            self.model = model

    async def get_by_id(self, id: Any, options: list[Any] | None = None) -> ModelT | None:
        """Get entity by primary key."""
        return await self.session.get(self.model, id, options=options)

    async def create(self, entity: ModelT) -> ModelT:
        """Add, flush and refresh a new entity."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, entity: ModelT) -> ModelT:
        """Flush pending changes of an entity and refresh it."""
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: ModelT) -> None:
        """Delete an entity."""
        await self.session.delete(entity)
        await self.session.flush()
