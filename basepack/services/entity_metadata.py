"""
Entity metadata from SQLAlchemy mappers.

The ORM side of column resolution: attribute metadata (semantic type,
nullability, primary key), association metadata (target, cardinality,
foreign key) and virtual attributes (properties and methods).
"""

import enum
import inspect as pyinspect
from dataclasses import dataclass, field
from functools import lru_cache

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import types as sa_types
from sqlalchemy.orm import (
    MANYTOMANY,
    MANYTOONE,
    ONETOMANY,
    Mapper,
    RelationshipProperty,
    configure_mappers,
)

from basepack.models.enums import AttrType, Cardinality

# Audit timestamp columns default to read-only
TIMESTAMP_ATTRIBUTES = frozenset({"created_at", "updated_at", "created_on", "updated_on"})


@dataclass(frozen=True)
class AttributeMeta:
    """Column-backed (or virtual) attribute of an entity."""

    name: str
    attr_type: AttrType
    nullable: bool = True
    primary_key: bool = False
    has_default: bool = False
    virtual: bool = False
    enum_values: tuple = ()

    @property
    def is_timestamp(self) -> bool:
        return self.name in TIMESTAMP_ATTRIBUTES


@dataclass(frozen=True)
class AssociationMeta:
    """Relationship from an entity to another."""

    name: str
    target: type
    cardinality: Cardinality
    foreign_key: str | None = None  # local FK attribute for belongs-to


@dataclass(frozen=True)
class EntityMetadata:
    """Everything column resolution needs to know about one mapped class."""

    model: type
    attributes: dict[str, AttributeMeta]
    associations: dict[str, AssociationMeta]
    primary_key: str
    column_attributes: tuple[str, ...] = field(default=())

    @property
    def name(self) -> str:
        return self.model.__name__

    def attribute(self, name: str) -> AttributeMeta | None:
        """Column attribute, or a virtual one for a property/method on the class."""
        if name in self.attributes:
            return self.attributes[name]
        if name in self.associations or name.startswith("_"):
            return None
        candidate = pyinspect.getattr_static(self.model, name, None)
        if isinstance(candidate, (property, staticmethod, classmethod)) or callable(candidate):
            return AttributeMeta(name=name, attr_type=AttrType.VIRTUAL, virtual=True)
        return None

    def association(self, name: str) -> AssociationMeta | None:
        return self.associations.get(name)


def attr_type_for(column_type: sa_types.TypeEngine) -> AttrType:
    """Map a SQLAlchemy column type to a semantic attribute type."""
    if isinstance(column_type, sa_types.Enum):
        return AttrType.ENUM
    if isinstance(column_type, sa_types.Boolean):
        return AttrType.BOOLEAN
    if isinstance(column_type, sa_types.Integer):
        return AttrType.INTEGER
    if isinstance(column_type, sa_types.Float):
        return AttrType.FLOAT
    if isinstance(column_type, sa_types.Numeric):
        return AttrType.DECIMAL
    if isinstance(column_type, sa_types.DateTime):
        return AttrType.DATETIME
    if isinstance(column_type, sa_types.Date):
        return AttrType.DATE
    if isinstance(column_type, sa_types.Time):
        return AttrType.TIME
    if isinstance(column_type, sa_types.Uuid):
        return AttrType.UUID
    if isinstance(column_type, sa_types.JSON):
        return AttrType.JSON
    if isinstance(column_type, sa_types.Text):
        return AttrType.TEXT
    return AttrType.STRING


def _enum_values(column_type: sa_types.TypeEngine) -> tuple:
    if not isinstance(column_type, sa_types.Enum):
        return ()
    if column_type.enum_class is not None and issubclass(column_type.enum_class, enum.Enum):
        return tuple(member.value for member in column_type.enum_class)
    return tuple(column_type.enums)


def _cardinality(rel: RelationshipProperty) -> Cardinality:
    if rel.direction is MANYTOONE:
        return Cardinality.BELONGS_TO
    if rel.direction is MANYTOMANY:
        return Cardinality.MANY_TO_MANY
    if rel.direction is ONETOMANY and not rel.uselist:
        return Cardinality.HAS_ONE
    return Cardinality.HAS_MANY


def _foreign_key(mapper: Mapper, rel: RelationshipProperty) -> str | None:
    if rel.direction is not MANYTOONE:
        return None
    for column in rel.local_columns:
        prop = mapper.get_property_by_column(column)
        return prop.key
    return None


@lru_cache(maxsize=None)
def entity_metadata(model: type) -> EntityMetadata:
    """
    Introspect a mapped class.

    Mappers are configured once per process and never change afterwards, so
    the result is cached per class.
    """
    configure_mappers()
    mapper: Mapper = sa_inspect(model)

    attributes: dict[str, AttributeMeta] = {}
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        attributes[prop.key] = AttributeMeta(
            name=prop.key,
            attr_type=attr_type_for(column.type),
            nullable=bool(column.nullable),
            primary_key=bool(column.primary_key),
            has_default=column.default is not None or column.server_default is not None,
            enum_values=_enum_values(column.type),
        )

    associations = {
        rel.key: AssociationMeta(
            name=rel.key,
            target=rel.mapper.class_,
            cardinality=_cardinality(rel),
            foreign_key=_foreign_key(mapper, rel),
        )
        for rel in mapper.relationships
    }

    primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key

    return EntityMetadata(
        model=model,
        attributes=attributes,
        associations=associations,
        primary_key=primary_key,
        column_attributes=tuple(attributes),
    )
