"""
Record service: CRUD and search for component-bound records.

Every write applies the component's strong default attributes on top of the
caller's attributes (defaults win), consults the permission policy, runs
model validation and isolates each record in its own savepoint. Validation,
permission and not-found outcomes are returned as results, never raised to
the caller.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError

from basepack.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from basepack.core.localization import ERROR_KEY_PREFIX
from basepack.core.permissions import AllowAll, PermissionPolicy
from basepack.models.contracts.columns import ColumnDescriptor
from basepack.models.contracts.queries import FilterClause, Pagination, SearchCondition, SortSpec
from basepack.models.contracts.results import DataPage, DeleteResult, RecordResult
from basepack.repositories.records import RecordRepository
from basepack.services.association_accessor import (
    association_values,
    serializable,
    set_value_for,
    value_for,
)
from basepack.services.columns import META_COLUMN
from basepack.services.entity_metadata import entity_metadata
from basepack.services.scope_translator import (
    QueryPlan,
    build_query,
    loader_options,
    search_to_conditions,
)

logger = logging.getLogger(__name__)

BLANK = f"{ERROR_KEY_PREFIX}.blank"
NOT_FOUND = "not_found"
PERMISSION_DENIED = "permission_denied"
VALIDATION = "validation"


def merge_strong_defaults(
    attributes: Mapping[str, Any],
    strong_defaults: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Caller attributes with strong defaults applied on top."""
    return {**attributes, **(strong_defaults or {})}


class RecordService:
    """
    CRUD/search operations for one model as configured by a component.

    Args:
        repository: Repository bound to the component's model
        columns: Resolved columns (value serialization and editability)
        permissions: Permission collaborator
        strong_default_attrs: Attributes forced onto every created/updated record
        base_scope: Component scope; reads, updates, deletes and row moves
            only see records inside it
        context: Passed to the permission collaborator (user, component id, ...)
    """

    def __init__(
        self,
        repository: RecordRepository,
        columns: Sequence[ColumnDescriptor],
        permissions: PermissionPolicy | None = None,
        strong_default_attrs: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
        base_scope: Any = None,
    ):
        self.repository = repository
        self.model = repository.model
        self.columns = [column for column in columns if column.name != META_COLUMN]
        self.permissions = permissions or AllowAll()
        self.strong_default_attrs = dict(strong_default_attrs or {})
        self.context = dict(context or {})
        self.base_scope = base_scope
        self.metadata = entity_metadata(self.model)
        self._by_name = {column.name: column for column in self.columns}

    # =========================================================================
    # Reading
    # =========================================================================

    async def get(self, plan: QueryPlan) -> tuple[list[Any], int | None]:
        """Records for a query plan, plus the total count when paginated."""
        return await self.repository.fetch(plan)

    async def get_data(self, plan: QueryPlan) -> DataPage:
        """Serialized rows for a query plan."""
        records, total = await self.get(plan)
        return DataPage(rows=[self.serialize(record) for record in records], total=total)

    async def find(self, record_id: Any) -> Any:
        """Record by id, None when missing or outside the base scope."""
        if self.base_scope is None:
            return await self.repository.find(
                record_id, options=loader_options(self.model, self.columns)
            )
        plan = build_query(self.model, self.columns, base_scope=self.base_scope)
        return await self.repository.find_in(plan, record_id)

    async def search(
        self,
        conditions: Iterable[SearchCondition],
        base_scope: Any = None,
        filters: Iterable[FilterClause] = (),
        sort: SortSpec | None = None,
        pagination: Pagination | None = None,
    ) -> DataPage:
        """
        Rows matching extended search conditions within the base scope.

        Raises:
            InvalidFilterError: Unknown search field or unsupported operator
        """
        plan = build_query(
            self.model,
            self.columns,
            base_scope=base_scope if base_scope is not None else self.base_scope,
            filters=filters,
            sort=sort,
            pagination=pagination,
            search=search_to_conditions(self.columns, conditions),
        )
        return await self.get_data(plan)

    def serialize(self, record: Any) -> dict[str, Any]:
        """
        Row for the renderer.

        Association cells carry the editing value (the foreign key where the
        column has one); their display values travel in the meta entry.
        """
        row = {
            column.name: serializable(value_for(record, column, for_display=False))
            for column in self.columns
        }
        row[META_COLUMN] = {
            "pri": getattr(record, self.metadata.primary_key),
            "association_values": association_values(record, self.columns),
        }
        return row

    # =========================================================================
    # Writing
    # =========================================================================

    async def create(
        self,
        attributes: Mapping[str, Any],
        strong_defaults: Mapping[str, Any] | None = None,
    ) -> RecordResult:
        """
        Create a record.

        Strong defaults (the component's, unless given) win over attributes.
        """
        defaults = self.strong_default_attrs if strong_defaults is None else strong_defaults
        try:
            self._check("create", self.permissions.can_create)
            async with self.repository.savepoint():
                record = self.repository.build()
                self._assign(record, attributes, defaults)
                self._validate(record)
                await self._persist(self.repository.create(record))
        except PermissionDeniedError:
            return RecordResult.failed(None, PERMISSION_DENIED)
        except ValidationError as e:
            logger.info(f"Create {self.model.__name__} rejected: {e.errors}")
            return RecordResult.failed(None, VALIDATION, e.errors)

        record_id = getattr(record, self.metadata.primary_key)
        logger.info(f"Created {self.model.__name__} {record_id}")
        return RecordResult.ok(record_id, await self._reloaded_row(record_id, record))

    async def update(
        self,
        record_id: Any,
        attributes: Mapping[str, Any],
        strong_defaults: Mapping[str, Any] | None = None,
    ) -> RecordResult:
        """
        Partially update a record: only supplied attributes change.
        """
        defaults = self.strong_default_attrs if strong_defaults is None else strong_defaults
        try:
            self._check("update", self.permissions.can_update)
            async with self.repository.savepoint():
                record = await self.find(record_id)
                if record is None:
                    raise NotFoundError(self.model.__name__, record_id)
                self._assign(record, attributes, defaults)
                self._validate(record)
                await self._persist(self.repository.update(record))
        except PermissionDeniedError:
            return RecordResult.failed(record_id, PERMISSION_DENIED)
        except NotFoundError:
            return RecordResult.failed(record_id, NOT_FOUND)
        except ValidationError as e:
            logger.info(f"Update {self.model.__name__} {record_id} rejected: {e.errors}")
            return RecordResult.failed(record_id, VALIDATION, e.errors)

        logger.info(f"Updated {self.model.__name__} {record_id}")
        return RecordResult.ok(record_id, await self._reloaded_row(record_id, record))

    async def update_many(
        self,
        items: Iterable[tuple[Any, Mapping[str, Any]]],
        strong_defaults: Mapping[str, Any] | None = None,
    ) -> list[RecordResult]:
        """
        Update several records, one savepoint each.

        Returns one result per item in input order; a failed record does not
        roll back or stop the others.
        """
        results = []
        for record_id, attributes in items:
            result = await self.update(record_id, attributes, strong_defaults)
            if not result.success:
                logger.warning(
                    f"Batch update of {self.model.__name__} {record_id} failed: {result.error}"
                )
            results.append(result)
        return results

    async def delete(self, ids: Iterable[Any]) -> list[DeleteResult]:
        """
        Delete records by id, best effort.

        Returns one result per id in input order.
        """
        results = []
        for record_id in ids:
            try:
                self._check("delete", self.permissions.can_delete)
                async with self.repository.savepoint():
                    record = await self.find(record_id)
                    if record is None:
                        raise NotFoundError(self.model.__name__, record_id)
                    await self.repository.delete(record)
            except PermissionDeniedError:
                results.append(DeleteResult(id=record_id, success=False, error=PERMISSION_DENIED))
            except NotFoundError:
                logger.warning(f"Delete of {self.model.__name__} {record_id}: not found")
                results.append(DeleteResult(id=record_id, success=False, error=NOT_FOUND))
            except IntegrityError as e:
                logger.warning(f"Delete of {self.model.__name__} {record_id} failed: {e.orig}")
                results.append(DeleteResult(id=record_id, success=False, error=VALIDATION))
            else:
                logger.info(f"Deleted {self.model.__name__} {record_id}")
                results.append(DeleteResult(id=record_id, success=True))
        return results

    async def move_rows(self, ids: Sequence[Any], position: int, attribute: str = "position") -> None:
        """
        Move records to a position in a list ordered by `attribute`.

        The moved records take consecutive positions starting at `position`;
        the rest shift to make room, keeping their relative order.
        """
        if attribute not in self.metadata.attributes:
            raise ConfigurationError(
                f"{self.model.__name__} has no '{attribute}' attribute for row reordering"
            )

        order_column = getattr(self.model, attribute)
        scoped = build_query(self.model, [], base_scope=self.base_scope).statement
        plan = QueryPlan(model=self.model, statement=scoped.order_by(order_column.asc()))
        records, _ = await self.repository.fetch(plan)

        moving = {str(record_id) for record_id in ids}
        pk = self.metadata.primary_key
        moved = [r for r in records if str(getattr(r, pk)) in moving]
        rest = [r for r in records if str(getattr(r, pk)) not in moving]
        position = max(0, min(position, len(rest)))
        for index, record in enumerate(rest[:position] + moved + rest[position:]):
            setattr(record, attribute, index)
        await self.repository.session.flush()
        logger.info(f"Moved {len(moved)} {self.model.__name__} rows to {position}")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check(self, operation: str, allowed: Any) -> None:
        if not allowed(self.model, self.context):
            logger.info(f"{operation} on {self.model.__name__} denied")
            raise PermissionDeniedError(operation, self.model.__name__)

    def _assign(
        self,
        record: Any,
        attributes: Mapping[str, Any],
        strong_defaults: Mapping[str, Any],
    ) -> None:
        """Apply attributes, then strong defaults, to a record."""
        errors: dict[str, list[str]] = {}
        merged = merge_strong_defaults(attributes, strong_defaults)
        # strong defaults go last so no caller column can overwrite them
        ordered = [name for name in merged if name not in strong_defaults] + list(strong_defaults)
        locked = self._locked_associations(strong_defaults)
        for name in ordered:
            if name == self.metadata.primary_key or name == META_COLUMN:
                continue
            if name not in strong_defaults and self._writes_through(name, locked):
                logger.debug(f"Ignoring '{name}': its association is fixed by a strong default")
                continue
            try:
                self._assign_one(record, name, merged[name], forced=name in strong_defaults)
            except ValueError as e:
                errors.setdefault(name, []).append(str(e))
        if errors:
            raise ValidationError(errors)

    def _locked_associations(self, strong_defaults: Mapping[str, Any]) -> set[str]:
        """Associations whose foreign key a strong default pins."""
        return {
            association.name
            for association in self.metadata.associations.values()
            if association.foreign_key is not None and association.foreign_key in strong_defaults
        }

    def _writes_through(self, name: str, associations: set[str]) -> bool:
        # assigning a linked object would override the foreign key at flush
        column = self._by_name.get(name)
        return column is not None and column.is_association and column.association[0] in associations

    def _assign_one(self, record: Any, name: str, value: Any, forced: bool) -> None:
        column = self._by_name.get(name)
        if column is not None:
            if column.editable or forced:
                set_value_for(record, column, value)
            else:
                logger.debug(f"Ignoring read-only column '{name}'")
        elif name in self.metadata.attributes:
            setattr(record, name, value)
        else:
            logger.debug(f"Ignoring unknown attribute '{name}' for {self.model.__name__}")

    def _validate(self, record: Any) -> None:
        """
        Model-level validation.

        Non-nullable columns without defaults must be set; a model may add
        its own messages through a `validate()` method returning
        {field: [messages]}.
        """
        errors: dict[str, list[str]] = {}
        for attr in self.metadata.attributes.values():
            if attr.nullable or attr.primary_key or attr.has_default:
                continue
            if getattr(record, attr.name) is None and not self._set_through_association(record, attr.name):
                errors.setdefault(attr.name, []).append(BLANK)

        validate = getattr(record, "validate", None)
        if callable(validate):
            for name, messages in (validate() or {}).items():
                errors.setdefault(name, []).extend(messages)

        if errors:
            raise ValidationError(errors)

    def _set_through_association(self, record: Any, foreign_key: str) -> bool:
        """A belongs-to link object satisfies its foreign key before flush."""
        for association in self.metadata.associations.values():
            if association.foreign_key == foreign_key:
                state = sa_inspect(record)
                if association.name in state.dict and state.dict[association.name] is not None:
                    return True
        return False

    @staticmethod
    async def _persist(operation: Any) -> None:
        try:
            await operation
        except IntegrityError as e:
            raise ValidationError({"base": [str(e.orig)]})

    async def _reloaded_row(self, record_id: Any, record: Any) -> dict[str, Any]:
        options = loader_options(self.model, self.columns)
        if options:
            record = await self.repository.reload(record_id, options=options) or record
        return self.serialize(record)
