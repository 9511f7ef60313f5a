"""Territory management for the vector control campaign.

This module contains functions for creating and editing areas, blocks and
properties, and for the block work-assignment operations. Block numbers
and property positions are kept dense: inserting at an occupied number
shifts the following ones up by one.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

from django.db import models, transaction
from django.db.models import Max
from django.utils import timezone

from . import machines
from .exceptions import CampaignError, InvalidValue, PartialBatchFailure
from .models import (
    TYPE_COUNTER_FIELDS,
    Agent,
    Area,
    Block,
    Property,
    PropertyStatus,
    PropertyType,
)
from .store import not_found_error, parse_identifier, store
from .weeks import to_day

logger = logging.getLogger(__name__)

# Property fields mirrored by block counters
POPULATION_FIELDS = ("inhabitants", "dogs", "cats")

EDITABLE_PROPERTY_FIELDS = frozenset(
    [
        "street",
        "number",
        "complement",
        "property_type",
        "inhabitants",
        "dogs",
        "cats",
        "note",
        "status",
    ]
)


@dataclass
class BatchResult:
    """Outcome of a bulk operation over a list of identifiers.

    Attributes:
        updated: Records that were updated.
        failures: Pairs of the submitted identifier and the error it got.
    """

    updated: list = field(default_factory=list)
    failures: list[tuple[Any, CampaignError]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.updated) + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> "BatchResult":
        """Raise PartialBatchFailure if any identifier failed.

        Returns:
            The result itself when every identifier succeeded.
        """
        if self.failures:
            raise PartialBatchFailure(self)
        return self


def _next_sequence(queryset: models.QuerySet, field_name: str) -> int:
    current = queryset.aggregate(top=Max(field_name))["top"]
    return (current or 0) + 1


def _shift_from(queryset: models.QuerySet, field_name: str, start: int) -> int:
    """Move every row at or after ``start`` up by one.

    Rows are moved highest first so the unique constraint never sees two
    rows with the same number.

    Returns:
        Number of rows shifted.
    """
    shifted = 0
    for obj in queryset.filter(**{f"{field_name}__gte": start}).order_by(
        f"-{field_name}"
    ):
        setattr(obj, field_name, getattr(obj, field_name) + 1)
        obj.save(update_fields=[field_name])
        shifted += 1
    return shifted


def _check_count(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidValue(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _check_property_type(value: Any) -> str:
    if value not in PropertyType.values:
        raise InvalidValue(f"Unknown property type: {value!r}")
    return value


def create_area(
    name: str,
    map_url: str,
    responsible_id: Optional[Any] = None,
) -> Area:
    """Create an area.

    Args:
        name: Name of the area.
        map_url: Link to the area's external map.
        responsible_id: Optional agent in charge of the area.

    Returns:
        The new Area.
    """
    responsible = store.get(Agent, responsible_id) if responsible_id else None
    area = store.create(Area, name=name, map_url=map_url, responsible=responsible)
    logger.info(f"Created area {area.name} ({area.pk})")
    return area


def delete_area(area_id: Any) -> Area:
    """Delete an area together with its blocks and their properties."""
    return store.delete_by_id(Area, area_id)


def create_block(area_id: Any, number: Optional[int] = None) -> Block:
    """Create a block inside an area.

    Args:
        area_id: Area the block belongs to.
        number: Sequence number for the block. Blocks at this number and
            above move up by one. Defaults to after the last block.

    Returns:
        The new Block.
    """
    if number is not None and (_check_count("number", number) < 1):
        raise InvalidValue("Block number must be at least 1")

    with transaction.atomic():
        # Lock the area so concurrent insertions into it are serialized
        area = store.get(Area, area_id, for_update=True)
        siblings = Block.objects.filter(area=area)
        if number is None:
            number = _next_sequence(siblings, "number")
        else:
            _shift_from(siblings, "number", number)
        block = store.create(Block, area=area, number=number)

    logger.info(f"Created block {block.number} in area {area.name}")
    return block


def create_property(
    block_id: Any,
    street: str,
    position: Optional[int] = None,
    **fields: Any,
) -> Property:
    """Create a property inside a block and update the block counters.

    Args:
        block_id: Block the property belongs to.
        street: Street name of the address.
        position: Position inside the block. Properties at this position
            and after move up by one. Defaults to after the last property.
        **fields: Other Property fields (number, complement, property_type,
            inhabitants, dogs, cats, note).

    Returns:
        The new Property, with status closed.
    """
    fields.pop("status", None)
    unknown = set(fields) - EDITABLE_PROPERTY_FIELDS
    if unknown:
        raise InvalidValue(f"Unknown property fields: {', '.join(sorted(unknown))}")
    property_type = _check_property_type(
        fields.setdefault("property_type", PropertyType.RESIDENCE.value)
    )
    for name in POPULATION_FIELDS:
        _check_count(name, fields.get(name, 0))
    if position is not None and (_check_count("position", position) < 1):
        raise InvalidValue("Property position must be at least 1")

    with transaction.atomic():
        block = store.get(Block, block_id, for_update=True)
        siblings = Property.objects.filter(block=block)
        if position is None:
            position = _next_sequence(siblings, "position")
        else:
            _shift_from(siblings, "position", position)
        prop = store.create(
            Property,
            block=block,
            position=position,
            street=street,
            **fields,
        )
        deltas = {"total_properties": 1, TYPE_COUNTER_FIELDS[property_type]: 1}
        for name in POPULATION_FIELDS:
            deltas[name] = fields.get(name, 0)
        store.bulk_increment(Block, block.pk, deltas)

    logger.info(f"Created property {prop.pk} at position {position} of block {block.pk}")
    return prop


def update_property(property_id: Any, **fields: Any) -> Property:
    """Edit a property's attributes.

    Status only changes when it is passed explicitly. Changes to the type
    or population counts are mirrored on the block counters.

    Raises:
        InvalidValue: If a field is unknown or out of range.
        PropertyNotFound: If the property does not exist.
    """
    unknown = set(fields) - EDITABLE_PROPERTY_FIELDS
    if unknown:
        raise InvalidValue(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "property_type" in fields:
        _check_property_type(fields["property_type"])
    if "status" in fields and fields["status"] not in PropertyStatus.values:
        raise InvalidValue(f"Unknown property status: {fields['status']!r}")
    for name in POPULATION_FIELDS:
        if name in fields:
            _check_count(name, fields[name])

    with transaction.atomic():
        prop = store.get(Property, property_id, for_update=True)
        deltas: dict[str, int] = {}
        new_type = fields.get("property_type", prop.property_type)
        if new_type != prop.property_type:
            deltas[TYPE_COUNTER_FIELDS[prop.property_type]] = -1
            deltas[TYPE_COUNTER_FIELDS[new_type]] = 1
        for name in POPULATION_FIELDS:
            if name in fields:
                deltas[name] = fields[name] - getattr(prop, name)

        for name, value in fields.items():
            setattr(prop, name, value)
        prop.save(update_fields=list(fields))
        if any(deltas.values()):
            store.bulk_increment(Block, prop.block_id, deltas)

    return prop


def delete_property(property_id: Any) -> Property:
    """Delete a property and take it out of the block counters."""
    with transaction.atomic():
        prop = store.get(Property, property_id, for_update=True)
        deltas = {"total_properties": -1, TYPE_COUNTER_FIELDS[prop.property_type]: -1}
        for name in POPULATION_FIELDS:
            deltas[name] = -getattr(prop, name)
        store.bulk_increment(Block, prop.block_id, deltas)
        store.delete_by_id(Property, prop.pk)
    return prop


def _apply_to_blocks(
    block_ids: Iterable[Any],
    updates: dict[str, Any],
    operation: str,
) -> BatchResult:
    """Apply ``updates`` to every resolvable block in ``block_ids``.

    Unresolvable identifiers are reported as failures; they never stop
    the valid ones from being updated.
    """
    result = BatchResult()
    resolved: dict[Any, Any] = {}
    for raw_id in block_ids:
        try:
            resolved[raw_id] = parse_identifier(raw_id)
        except CampaignError as e:
            result.failures.append((raw_id, e))

    existing = set(
        Block.objects.filter(pk__in=resolved.values()).values_list("pk", flat=True)
    )
    for raw_id, key in resolved.items():
        if key not in existing:
            result.failures.append((raw_id, not_found_error(Block)(key)))

    found = [key for key in resolved.values() if key in existing]
    if found:
        Block.objects.filter(pk__in=found).update(**updates)
        result.updated = list(Block.objects.filter(pk__in=found))

    for raw_id, error in result.failures:
        logger.warning(f"{operation}: block {raw_id!r} skipped: {error}")
    logger.info(
        f"{operation}: {len(result.updated)} blocks updated, "
        f"{len(result.failures)} failed"
    )
    return result


def assign_blocks(block_ids: Iterable[Any], agent_id: Any) -> BatchResult:
    """Assign a list of blocks to an agent.

    Args:
        block_ids: Blocks to assign.
        agent_id: Agent that will work the blocks.

    Returns:
        BatchResult with the assigned blocks and a BlockNotFound or
        InvalidReference failure per unresolvable identifier.

    Raises:
        AgentNotFound: If the agent does not exist. Nothing is updated.
    """
    agent = store.get(Agent, agent_id)
    return _apply_to_blocks(
        block_ids,
        machines.assignment_fields(agent.pk),
        f"Assign to {agent.name}",
    )


def mark_blocks_worked(
    block_ids: Iterable[Any],
    agent_id: Any,
    when: Optional[Union[date, datetime, str]] = None,
) -> BatchResult:
    """Record that an agent worked a list of blocks.

    Args:
        block_ids: Blocks that were worked.
        agent_id: Agent that worked them.
        when: Moment of the work, normalized to its day. Defaults to now.

    Returns:
        BatchResult with the updated blocks and per-identifier failures.

    Raises:
        AgentNotFound: If the agent does not exist. Nothing is updated.
    """
    agent = store.get(Agent, agent_id)
    day = to_day(when if when is not None else timezone.now())
    return _apply_to_blocks(
        block_ids,
        machines.worked_fields(agent.pk, day),
        f"Mark worked by {agent.name}",
    )


def reset_responsibles() -> int:
    """Clear the assigned agent of every block.

    Returns:
        Number of blocks that had an assigned agent.
    """
    count = store.bulk_update(
        Block,
        {"assigned_to__isnull": False},
        **machines.RESET_RESPONSIBLE_FIELDS,
    )
    logger.info(f"Cleared responsibles of {count} blocks")
    return count
