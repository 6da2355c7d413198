"""
Declarative base for basepack and host application models.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def find_model(name: str, base: type[DeclarativeBase] = Base) -> type | None:
    """Look up a mapped class by its class name in the declarative registry."""
    for mapper in base.registry.mappers:
        if mapper.class_.__name__ == name:
            return mapper.class_
    return None
