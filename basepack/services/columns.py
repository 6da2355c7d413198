"""
Column metadata builder.

Turns column specs (attribute names or detailed dicts) into resolved
ColumnDescriptors. Compound names such as "role__name" or
"author__publisher__name" walk the model's associations; every link must be
a declared association and the leaf must be an attribute (column, property or
method) of the last associated entity.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from basepack.core.exceptions import (
    AssociationDepthError,
    ConfigurationError,
    UnknownAssociationError,
    UnknownAttributeError,
)
from basepack.core.localization import CatalogLocalizer, Localizer, humanize
from basepack.models.contracts.columns import (
    ASSOCIATION_DELIMITER,
    ColumnDescriptor,
    ColumnSpec,
)
from basepack.models.enums import AttrType, FilterType
from basepack.services.entity_metadata import AttributeMeta, EntityMetadata, entity_metadata

logger = logging.getLogger(__name__)

META_COLUMN = "_meta"

DEFAULT_MAX_ASSOCIATION_DEPTH = 4

_FILTER_TYPES = {
    AttrType.STRING: FilterType.STRING,
    AttrType.TEXT: FilterType.STRING,
    AttrType.UUID: FilterType.STRING,
    AttrType.INTEGER: FilterType.NUMERIC,
    AttrType.FLOAT: FilterType.NUMERIC,
    AttrType.DECIMAL: FilterType.NUMERIC,
    AttrType.DATE: FilterType.DATE,
    AttrType.DATETIME: FilterType.DATE,
    AttrType.BOOLEAN: FilterType.BOOLEAN,
    AttrType.ENUM: FilterType.LIST,
}


def filter_type_for(attr_type: AttrType) -> FilterType | None:
    """Filter flavour for an attribute type; None when it cannot be filtered."""
    return _FILTER_TYPES.get(attr_type)


def resolve_editable(spec: ColumnSpec, default: bool) -> bool:
    """`editable` wins over `read_only`; otherwise fall back to the default."""
    if spec.editable is not None:
        return spec.editable
    if spec.read_only is not None:
        return not spec.read_only
    return default


def apply_columns_order(
    columns: Sequence[ColumnDescriptor],
    columns_order: Sequence[str] | None,
) -> list[ColumnDescriptor]:
    """
    Reorder columns by a persisted name sequence.

    Names no longer configured are dropped; configured columns missing from
    the persisted order keep their relative position at the end.
    """
    if not columns_order:
        return list(columns)
    by_name = {column.name: column for column in columns}
    ordered = [by_name[name] for name in columns_order if name in by_name]
    seen = {column.name for column in ordered}
    ordered.extend(column for column in columns if column.name not in seen)
    return ordered


class ColumnBuilder:
    """
    Resolves column specs against a model.

    Stateless apart from its collaborators; one builder may serve many
    requests.
    """

    def __init__(
        self,
        localizer: Localizer | None = None,
        max_association_depth: int = DEFAULT_MAX_ASSOCIATION_DEPTH,
    ):
        self.localizer = localizer or CatalogLocalizer()
        self.max_association_depth = max_association_depth

    def build(
        self,
        model: type,
        specs: Iterable[str | dict[str, Any] | ColumnSpec],
        with_meta: bool = False,
        columns_order: Sequence[str] | None = None,
    ) -> list[ColumnDescriptor]:
        """
        Build descriptors for all specs, in input order.

        Args:
            model: Mapped class the columns are bound to
            specs: Attribute names, dicts or ColumnSpecs
            with_meta: Append the hidden meta column and honor columns_order
            columns_order: Persisted column order (only used with with_meta)

        Raises:
            UnknownAttributeError: If an attribute cannot be resolved
            UnknownAssociationError: If an association link cannot be resolved
            AssociationDepthError: If an association chain is too long
        """
        columns = [self.build_column(model, ColumnSpec.coerce(spec)) for spec in specs]

        if with_meta:
            columns = apply_columns_order(columns, columns_order)
            columns.append(self.meta_column(model))

        logger.debug(f"Built {len(columns)} columns for {model.__name__}")
        return columns

    def build_column(self, model: type, spec: ColumnSpec) -> ColumnDescriptor:
        """Resolve a single column spec."""
        meta = entity_metadata(model)
        if spec.is_association:
            return self._association_column(meta, spec)
        return self._attribute_column(meta, spec)

    def meta_column(self, model: type) -> ColumnDescriptor:
        """Hidden column carrying the primary key and association display values."""
        return ColumnDescriptor(
            name=META_COLUMN,
            label=META_COLUMN,
            label_key=self._label_key(model, META_COLUMN),
            attr_type=AttrType.JSON,
            editable=False,
            filterable=False,
            sortable=False,
            hidden=True,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def _attribute_column(self, meta: EntityMetadata, spec: ColumnSpec) -> ColumnDescriptor:
        attr = meta.attribute(spec.name)
        if attr is None:
            if spec.getter is None:
                raise UnknownAttributeError(meta.name, spec.name)
            attr = AttributeMeta(name=spec.name, attr_type=AttrType.VIRTUAL, virtual=True)

        default_editable = not (
            attr.primary_key
            or attr.is_timestamp
            or (attr.virtual and spec.setter is None)
        )
        return self._descriptor(
            meta,
            spec,
            attr,
            editable=resolve_editable(spec, default_editable),
            hidden=attr.primary_key,
            sortable=not attr.virtual or spec.sorting_scope is not None,
        )

    def _association_column(self, meta: EntityMetadata, spec: ColumnSpec) -> ColumnDescriptor:
        *links, leaf = spec.name.split(ASSOCIATION_DELIMITER)
        if len(links) > self.max_association_depth:
            raise AssociationDepthError(spec.name, self.max_association_depth)

        current = meta
        first_association = None
        for link in links:
            association = current.association(link)
            if association is None:
                raise UnknownAssociationError(current.name, link)
            if not association.cardinality.is_singular:
                raise ConfigurationError(
                    f"Column '{spec.name}': association '{link}' on {current.name} "
                    f"is {association.cardinality.value}, only singular links can be shown"
                )
            first_association = first_association or association
            current = entity_metadata(association.target)

        attr = current.attribute(leaf)
        if attr is None:
            raise UnknownAttributeError(current.name, leaf)

        foreign_key = first_association.foreign_key if len(links) == 1 else None
        return self._descriptor(
            meta,
            spec,
            attr,
            editable=resolve_editable(spec, True),
            hidden=False,
            sortable=not attr.virtual or spec.sorting_scope is not None,
            association=tuple(links),
            association_attr=leaf,
            foreign_key=foreign_key,
            nullable=True,
        )

    def _descriptor(
        self,
        meta: EntityMetadata,
        spec: ColumnSpec,
        attr: AttributeMeta,
        *,
        editable: bool,
        hidden: bool,
        sortable: bool,
        **association: Any,
    ) -> ColumnDescriptor:
        filter_type = None if spec.getter else filter_type_for(attr.attr_type)
        label_key = self._label_key(meta.model, spec.name)
        label = spec.label or self.localizer.translate(label_key, default=humanize(spec.name))

        fields: dict[str, Any] = {
            "name": spec.name,
            "label": label,
            "label_key": label_key,
            "attr_type": attr.attr_type,
            "filter_type": filter_type,
            "filter_options": list(attr.enum_values) or None,
            "editable": editable,
            "filterable": spec.filterable and filter_type is not None,
            "sortable": sortable,
            "hidden": spec.hidden if spec.hidden is not None else hidden,
            "primary_key": attr.primary_key,
            "nullable": attr.nullable,
            "virtual": attr.virtual,
            "sorting_scope": spec.sorting_scope,
            "default_value": spec.default_value,
            "getter": spec.getter,
            "setter": spec.setter,
        }
        fields.update(association)

        # caller options win over computed metadata
        options = spec.display_options()
        if "filter_type" in options:
            fields["filterable"] = spec.filterable and options["filter_type"] is not None
        fields.update(options)
        return ColumnDescriptor(**fields)

    @staticmethod
    def _label_key(model: type, name: str) -> str:
        return f"models.{model.__name__.lower()}.attributes.{name}"
