"""Campaign cycle reports and the cycle reset.

Only administrators may run these operations. The caller is the Agent
performing the request; checking who the caller is belongs to the
authentication layer.
"""

import logging
from typing import Any

from django.db import transaction
from django.db.models import Count

from . import machines
from .conf import get_setting
from .exceptions import Forbidden
from .models import (
    Block,
    Cycle,
    DailyLog,
    Property,
    PropertyStatus,
    PropertyType,
    WeeklyLog,
)
from .store import store
from .summary import Summary, split_block_numbers

logger = logging.getLogger(__name__)


def require_administrator(caller: Any, operation: str) -> None:
    """Refuse the operation unless ``caller`` is an administrator.

    Raises:
        Forbidden: If the caller is missing or not an administrator.
    """
    if not getattr(caller, "is_administrator", False):
        raise Forbidden(
            f"{operation} requires an administrator",
            caller=getattr(caller, "pk", None),
        )


def property_status_counts() -> dict[str, int]:
    """Count properties per status, with a ``total`` entry."""
    counts = {status: 0 for status in PropertyStatus.values}
    rows = Property.objects.values("status").annotate(n=Count("pk")).order_by()
    for row in rows:
        counts[row["status"]] = row["n"]
    counts["total"] = sum(counts[status] for status in PropertyStatus.values)
    return counts


def visited_type_counts() -> dict[str, int]:
    """Count visited properties per property type."""
    counts = {code: 0 for code in PropertyType.values}
    rows = (
        Property.objects.filter(status=PropertyStatus.VISITED)
        .values("property_type")
        .annotate(n=Count("pk"))
        .order_by()
    )
    for row in rows:
        counts[row["property_type"]] = row["n"]
    return counts


def open_weekly_rollup() -> dict[Any, Summary]:
    """Fold the weekly logs not yet closed into a cycle, per area.

    Agents are not distinguished: every weekly log of an area is added to
    the same summary, and a block number worked by two agents counts once.

    Returns:
        Summary per area identifier.
    """
    separator = get_setting("CAMPAIGN_BLOCK_SEPARATOR")
    per_area: dict[Any, Summary] = {}
    for log in WeeklyLog.objects.filter(cycle__isnull=True).order_by("area_id", "week"):
        summary = per_area.setdefault(log.area_id, Summary())
        summary.merge(
            Summary.from_log(log, blocks=split_block_numbers(log.worked_blocks, separator))
        )
    return per_area


def cycle_summary(caller: Any) -> dict[str, Any]:
    """Report the completion state of the current cycle.

    Args:
        caller: Agent requesting the report.

    Returns:
        Dictionary with ``properties`` (counts per status),
        ``visited_by_type`` (visited properties per type) and ``areas``
        (Summary of the open weekly logs per area identifier).

    Raises:
        Forbidden: If the caller is not an administrator.
    """
    require_administrator(caller, "Cycle summary")
    return {
        "properties": property_status_counts(),
        "visited_by_type": visited_type_counts(),
        "areas": open_weekly_rollup(),
    }


def reset_cycle(caller: Any) -> dict[str, int]:
    """Start a new cycle.

    Visited properties go back to closed and every block's worked flag is
    cleared. Refused properties keep their status. Both updates commit
    together or not at all.

    Args:
        caller: Agent requesting the reset.

    Returns:
        Number of properties and blocks modified.

    Raises:
        Forbidden: If the caller is not an administrator.
    """
    require_administrator(caller, "Cycle reset")
    with transaction.atomic():
        properties = store.bulk_update(
            Property,
            {"status__in": machines.RESETTABLE_STATUSES},
            status=PropertyStatus.CLOSED,
        )
        blocks = store.bulk_update(Block, {"worked": True}, **machines.RESET_BLOCK_FIELDS)

    logger.info(
        f"Cycle reset by {caller.name}: {properties} properties closed, "
        f"{blocks} blocks cleared"
    )
    return {"properties": properties, "blocks": blocks}


def close_cycle(caller: Any) -> Cycle:
    """Close the current cycle and link its open daily and weekly logs to it.

    Linked logs are left out of later weekly rebuilds, so a week number
    reached again next year starts a new weekly log.

    Args:
        caller: Agent closing the cycle.

    Returns:
        The new Cycle.

    Raises:
        Forbidden: If the caller is not an administrator.
    """
    require_administrator(caller, "Cycle close")
    with transaction.atomic():
        last = Cycle.get_current()
        cycle = store.create(
            Cycle,
            number=last.number + 1 if last else 1,
            closed_by=caller,
        )
        daily = store.bulk_update(DailyLog, {"cycle__isnull": True}, cycle=cycle)
        linked = store.bulk_update(WeeklyLog, {"cycle__isnull": True}, cycle=cycle)

    logger.info(f"Closed {cycle} with {linked} weekly logs and {daily} daily logs")
    return cycle
