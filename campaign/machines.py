"""Lifecycle rules for properties and blocks.

Property status only moves forward through visits during a cycle:

    closed  --visit(visited|refused|closed)-->  visited | refused | closed
    refused --visit(visited|refused)-->         visited | refused
    visited --x (AlreadyVisited)

Only the cycle reset moves a property back to ``closed``, and it only
touches ``visited`` properties; ``refused`` ones stay refused so agents can
approach them again in the next cycle.

Blocks go ``unassigned -> assigned(agent) -> worked(agent, date)`` and the
cycle reset clears the ``worked`` flag.
"""

from datetime import date
from typing import Any, Optional

from .exceptions import AlreadyVisited, InvalidStatusTransition, InvalidVisitDetail
from .models import Block, PropertyStatus

VISIT_TRANSITIONS: dict[str, frozenset[str]] = {
    PropertyStatus.CLOSED.value: frozenset(PropertyStatus.values),
    PropertyStatus.REFUSED.value: frozenset(
        [PropertyStatus.VISITED.value, PropertyStatus.REFUSED.value]
    ),
    PropertyStatus.VISITED.value: frozenset(),
}

# Statuses the cycle reset moves back to closed
RESETTABLE_STATUSES = (PropertyStatus.VISITED.value,)


def status_after_visit(current: str, outcome: str) -> str:
    """Get the property status that a visit with ``outcome`` leads to.

    Args:
        current: Current property status.
        outcome: Outcome status of the visit being recorded.

    Returns:
        The new property status, equal to ``outcome``.

    Raises:
        InvalidVisitDetail: If ``outcome`` is not a known status.
        AlreadyVisited: If the property was already visited this cycle.
        InvalidStatusTransition: If the outcome would move a refused
            property back to closed.
    """
    if outcome not in PropertyStatus.values:
        raise InvalidVisitDetail(f"Unknown visit outcome: {outcome!r}")
    if current == PropertyStatus.VISITED:
        raise AlreadyVisited("Property was already visited in this cycle")
    if outcome not in VISIT_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(
            f"A visit cannot move a property from {current} to {outcome}",
            current=current,
            outcome=outcome,
        )
    return outcome


def assignment_fields(agent_id: Any) -> dict[str, Any]:
    """Get the block fields that assign a block to an agent."""
    return {"assigned_to_id": agent_id}


def worked_fields(agent_id: Any, day: date) -> dict[str, Any]:
    """Get the block fields recording that an agent worked a block on ``day``.

    The assignment is cleared, since the work it asked for is done.
    """
    return {
        "assigned_to_id": None,
        "worked_by_id": agent_id,
        "work_date": day,
        "worked": True,
    }


# Applied to every block by the cycle reset; worked_by and work_date are kept
RESET_BLOCK_FIELDS = {"worked": False}

# Applied to every block by the responsibles reset; worked state is kept
RESET_RESPONSIBLE_FIELDS = {"assigned_to_id": None}


def block_state(block: Block) -> tuple[str, Optional[Any], Optional[date]]:
    """Describe the assignment state of a block.

    Returns:
        Tuple of state name, the agent identifier the state refers to and
        the work date when the block is worked.
    """
    state = block.assignment_state
    if state == "worked":
        return state, block.worked_by_id, block.work_date
    if state == "assigned":
        return state, block.assigned_to_id, None
    return state, None, None
