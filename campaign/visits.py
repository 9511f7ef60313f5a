"""Recording of property visits.

A visit is written together with the property status change it causes, in
a single transaction with the property row locked. Either both are stored
or neither is.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from django.db import transaction
from django.utils import timezone

from . import machines
from .exceptions import InvalidVisitDetail
from .models import Agent, DepositCategory, Property, PropertyStatus, Visit, empty_deposit_counts
from .store import parse_identifier, store
from .weeks import to_day

logger = logging.getLogger(__name__)

COUNT_FIELDS = (
    "deposits_eliminated",
    "sample_start",
    "sample_end",
    "foci",
    "deposits_treated",
)

QUANTITY_STEP = Decimal("0.01")


def normalize_deposits(deposits: Optional[Mapping[str, Any]]) -> dict[str, int]:
    """Validate deposit inspection counts and fill in missing categories.

    Args:
        deposits: Inspections per deposit category code.

    Returns:
        A count for each of the seven categories.

    Raises:
        InvalidVisitDetail: If a category is unknown or a count is not a
            non-negative integer.
    """
    counts = empty_deposit_counts()
    for category, count in (deposits or {}).items():
        if category not in DepositCategory.values:
            raise InvalidVisitDetail(f"Unknown deposit category: {category!r}")
        counts[category] = _count(f"deposits_inspected.{category}", count)
    return counts


def _count(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidVisitDetail(f"{name} must be a non-negative integer, got {value!r}")
    return value


def _quantity(value: Any) -> Decimal:
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidVisitDetail(f"Invalid larvicide quantity: {value!r}") from None
    if not quantity.is_finite() or quantity < 0:
        raise InvalidVisitDetail(f"Invalid larvicide quantity: {value!r}")
    # Stored with 8 integer digits and 2 decimal places
    if quantity and quantity.adjusted() >= 8:
        raise InvalidVisitDetail(f"Larvicide quantity too large: {value!r}")
    stored = quantity.quantize(QUANTITY_STEP)
    if stored != quantity:
        raise InvalidVisitDetail(
            f"Larvicide quantity has more than 2 decimal places: {value!r}"
        )
    return stored


def record_visit(
    property_id: Any,
    agent_id: Any,
    status: str,
    visit_date: Optional[Union[date, datetime, str]] = None,
    deposits_inspected: Optional[Mapping[str, Any]] = None,
    larvicide_quantity: Any = 0,
    **counts: Any,
) -> Visit:
    """Record a visit to a property and move the property to its outcome.

    Args:
        property_id: Property that was visited.
        agent_id: Agent that made the visit.
        status: Outcome of the visit (closed, visited or refused).
        visit_date: When the visit happened, normalized to its day.
            Defaults to today.
        deposits_inspected: Inspections per deposit category code.
        larvicide_quantity: Larvicide applied.
        **counts: deposits_eliminated, sample_start, sample_end, foci and
            deposits_treated.

    Returns:
        The stored Visit.

    Raises:
        InvalidReference: If an identifier is malformed.
        InvalidDate: If ``visit_date`` cannot be parsed.
        InvalidVisitDetail: If a detail field is invalid.
        PropertyNotFound: If the property does not exist.
        AgentNotFound: If the agent does not exist.
        AlreadyVisited: If the property was already visited this cycle.
        InvalidStatusTransition: If the outcome would reopen a refusal as
            closed.
    """
    property_key = parse_identifier(property_id)
    agent_key = parse_identifier(agent_id)

    unknown = set(counts) - set(COUNT_FIELDS)
    if unknown:
        raise InvalidVisitDetail(f"Unknown visit fields: {', '.join(sorted(unknown))}")
    details = {name: _count(name, counts.get(name, 0)) for name in COUNT_FIELDS}
    if status not in PropertyStatus.values:
        raise InvalidVisitDetail(f"Unknown visit outcome: {status!r}")
    day = to_day(visit_date if visit_date is not None else timezone.now())
    deposits = normalize_deposits(deposits_inspected)
    quantity = _quantity(larvicide_quantity)

    with transaction.atomic():
        prop = store.get(Property, property_key, for_update=True)
        agent = store.get(Agent, agent_key)
        new_status = machines.status_after_visit(prop.status, status)

        visit = store.create(
            Visit,
            property=prop,
            agent=agent,
            property_type=prop.property_type,
            visit_date=day,
            deposits_inspected=deposits,
            larvicide_quantity=quantity,
            has_focus=details["foci"] > 0,
            status=new_status,
            **details,
        )
        prop.status = new_status
        prop.save(update_fields=["status"])

    logger.info(
        f"Recorded visit {visit.pk} to property {prop.pk} by {agent.name} "
        f"on {day}: {new_status}"
    )
    return visit
