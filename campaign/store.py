"""Entity store over the Django ORM.

Campaign operations reach the database through ``EntityStore`` so that
lookups by identifier, malformed identifiers and missing records are
reported the same way everywhere, and so that counters are only ever
changed with atomic ``F()`` increments.
"""

import logging
import uuid
from typing import Any, Iterable, Optional, Type, TypeVar

from django.db import models
from django.db.models import F, QuerySet

from .exceptions import (
    AgentNotFound,
    AreaNotFound,
    BlockNotFound,
    DailyLogNotFound,
    InvalidReference,
    NotFound,
    PropertyNotFound,
    WeeklyLogNotFound,
)
from .models import Agent, Area, Block, DailyLog, Property, WeeklyLog

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=models.Model)

NOT_FOUND_ERRORS: dict[Type[models.Model], Type[NotFound]] = {
    Agent: AgentNotFound,
    Area: AreaNotFound,
    Block: BlockNotFound,
    Property: PropertyNotFound,
    DailyLog: DailyLogNotFound,
    WeeklyLog: WeeklyLogNotFound,
}


def parse_identifier(value: Any) -> uuid.UUID:
    """Parse a record identifier.

    Args:
        value: A UUID or its string form.

    Returns:
        The identifier as a UUID.

    Raises:
        InvalidReference: If the value is not a well-formed identifier.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidReference(value) from None


def not_found_error(model: Type[models.Model]) -> Type[NotFound]:
    """Get the NotFound subclass raised for a missing record of ``model``."""
    return NOT_FOUND_ERRORS.get(model, NotFound)


class EntityStore:
    """Keyed access to campaign records.

    Every method takes the model class as its first argument. Identifiers
    may be given as UUIDs or strings.
    """

    def get(
        self,
        model: Type[ModelT],
        pk: Any,
        for_update: bool = False,
    ) -> ModelT:
        """Fetch a single record by identifier.

        Args:
            model: Model class to look up.
            pk: Record identifier.
            for_update: Lock the row until the end of the current
                transaction.

        Returns:
            The record.

        Raises:
            InvalidReference: If ``pk`` is malformed.
            NotFound: If no record has that identifier.
        """
        key = parse_identifier(pk)
        queryset = model.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=key)
        except model.DoesNotExist:
            raise not_found_error(model)(key) from None

    def find(
        self,
        model: Type[ModelT],
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[Iterable[str]] = None,
    ) -> QuerySet:
        """Fetch the records matching ``filters``.

        Args:
            model: Model class to query.
            filters: Django lookup keyword arguments.
            order_by: Optional ordering, overriding the model default.

        Returns:
            Lazy queryset of matching records.
        """
        queryset = model.objects.filter(**(filters or {}))
        if order_by:
            queryset = queryset.order_by(*order_by)
        return queryset

    def create(self, model: Type[ModelT], **fields: Any) -> ModelT:
        """Create and return a new record."""
        return model.objects.create(**fields)

    def update_by_id(self, model: Type[ModelT], pk: Any, **fields: Any) -> ModelT:
        """Update a record by identifier and return it refreshed.

        Raises:
            InvalidReference: If ``pk`` is malformed.
            NotFound: If no record has that identifier.
        """
        key = parse_identifier(pk)
        updated = model.objects.filter(pk=key).update(**fields)
        if not updated:
            raise not_found_error(model)(key)
        return model.objects.get(pk=key)

    def bulk_update(
        self,
        model: Type[models.Model],
        filters: dict[str, Any],
        **fields: Any,
    ) -> int:
        """Update every record matching ``filters``.

        Returns:
            Number of records modified.
        """
        return model.objects.filter(**filters).update(**fields)

    def bulk_increment(
        self,
        model: Type[models.Model],
        pk: Any,
        deltas: dict[str, int],
    ) -> int:
        """Atomically add ``deltas`` to numeric fields of one record.

        The increment is done by the database in a single UPDATE, so
        concurrent calls on the same record never lose an update.

        Args:
            model: Model class of the record.
            pk: Record identifier.
            deltas: Amount to add per field name. Zero deltas are skipped.

        Returns:
            Number of records modified (0 or 1).

        Raises:
            InvalidReference: If ``pk`` is malformed.
            NotFound: If no record has that identifier.
        """
        key = parse_identifier(pk)
        expressions = {
            field: F(field) + delta for field, delta in deltas.items() if delta
        }
        if not expressions:
            if not model.objects.filter(pk=key).exists():
                raise not_found_error(model)(key)
            return 0
        updated = model.objects.filter(pk=key).update(**expressions)
        if not updated:
            raise not_found_error(model)(key)
        return updated

    def delete_by_id(self, model: Type[ModelT], pk: Any) -> ModelT:
        """Delete a record by identifier.

        Related rows are removed according to each foreign key's
        ``on_delete`` rule.

        Returns:
            The deleted record.

        Raises:
            InvalidReference: If ``pk`` is malformed.
            NotFound: If no record has that identifier.
        """
        instance = self.get(model, pk)
        deleted, per_model = instance.delete()
        logger.info(f"Deleted {model.__name__} {pk} ({deleted} rows: {per_model})")
        return instance

    def delete_many(self, model: Type[models.Model], filters: dict[str, Any]) -> int:
        """Delete every record matching ``filters``.

        Returns:
            Number of records of ``model`` deleted.
        """
        _, per_model = model.objects.filter(**filters).delete()
        return per_model.get(model._meta.label, 0)


store = EntityStore()
