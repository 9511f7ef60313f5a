"""Rollup totals and the folds that compute them.

``Summary`` holds the totals shared by daily logs, weekly logs and cycle
reports. The fold functions here work on plain objects and mappings, so
they can be exercised without a database; the rollup builders do the
querying and hand the results over.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from .models import empty_deposit_counts, empty_type_counts

# Scalar totals added field by field when summaries are merged
SCALAR_FIELDS = (
    "total_visits",
    "deposits_eliminated",
    "larvicide_properties",
    "larvicide_quantity",
    "larvicide_deposits",
    "focus_properties",
    "total_foci",
)


@dataclass
class Summary:
    """Totals of a set of visits.

    Attributes:
        blocks: Distinct blocks worked, as identifiers for daily summaries
            and as printed block numbers for weekly and area summaries.
        visit_ids: Visits that contributed, kept for daily summaries only.
    """

    total_visits: int = 0
    visits_by_type: dict[str, int] = field(default_factory=empty_type_counts)
    deposits_inspected: dict[str, int] = field(default_factory=empty_deposit_counts)
    deposits_eliminated: int = 0
    larvicide_properties: int = 0
    larvicide_quantity: Decimal = Decimal("0")
    larvicide_deposits: int = 0
    focus_properties: int = 0
    total_foci: int = 0
    blocks: set = field(default_factory=set)
    visit_ids: list = field(default_factory=list)

    @property
    def total_blocks(self) -> int:
        return len(self.blocks)

    def add_visit(self, visit: Any, block_id: Any = None) -> None:
        """Fold one visit into the totals.

        Args:
            visit: Object with the Visit attributes.
            block_id: Block of the visited property, counted once however
                many of its properties were visited.
        """
        self.total_visits += 1
        self.visits_by_type[visit.property_type] = (
            self.visits_by_type.get(visit.property_type, 0) + 1
        )
        for category, count in (visit.deposits_inspected or {}).items():
            self.deposits_inspected[category] = (
                self.deposits_inspected.get(category, 0) + count
            )
        self.deposits_eliminated += visit.deposits_eliminated

        quantity = Decimal(str(visit.larvicide_quantity or 0))
        if quantity > 0:
            self.larvicide_properties += 1
        self.larvicide_quantity += quantity
        self.larvicide_deposits += visit.deposits_treated

        if visit.foci > 0:
            self.focus_properties += 1
        self.total_foci += visit.foci

        if block_id is not None:
            self.blocks.add(block_id)
        visit_id = getattr(visit, "pk", None)
        if visit_id is not None:
            self.visit_ids.append(visit_id)

    def merge(self, other: "Summary") -> None:
        """Add another summary's totals to this one.

        Scalars and category counters are added; blocks are united, so a
        block present in both is counted once.
        """
        for name in SCALAR_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(other, name))
        for code, count in other.visits_by_type.items():
            self.visits_by_type[code] = self.visits_by_type.get(code, 0) + count
        for code, count in other.deposits_inspected.items():
            self.deposits_inspected[code] = (
                self.deposits_inspected.get(code, 0) + count
            )
        self.blocks |= other.blocks

    def to_fields(self) -> dict[str, Any]:
        """Get the totals as SummaryFields model values.

        Returns:
            Dictionary suitable for ``update_or_create(defaults=...)``.
        """
        return {
            "total_blocks": self.total_blocks,
            "total_visits": self.total_visits,
            "visits_by_type": dict(self.visits_by_type),
            "deposits_inspected": dict(self.deposits_inspected),
            "deposits_eliminated": self.deposits_eliminated,
            "larvicide_properties": self.larvicide_properties,
            "larvicide_quantity": self.larvicide_quantity,
            "larvicide_deposits": self.larvicide_deposits,
            "focus_properties": self.focus_properties,
            "total_foci": self.total_foci,
        }

    def as_dict(self) -> dict[str, Any]:
        """Get a JSON-friendly representation, blocks included."""
        data = self.to_fields()
        data["larvicide_quantity"] = str(self.larvicide_quantity)
        data["blocks"] = sorted(str(block) for block in self.blocks)
        return data

    @classmethod
    def from_log(cls, log: Any, blocks: Optional[Iterable[Any]] = None) -> "Summary":
        """Rebuild a summary from a stored daily or weekly log.

        Args:
            log: A DailyLog or WeeklyLog.
            blocks: Block keys to attach, since logs store them apart from
                the totals.
        """
        summary = cls(
            total_visits=log.total_visits,
            deposits_eliminated=log.deposits_eliminated,
            larvicide_properties=log.larvicide_properties,
            larvicide_quantity=Decimal(str(log.larvicide_quantity)),
            larvicide_deposits=log.larvicide_deposits,
            focus_properties=log.focus_properties,
            total_foci=log.total_foci,
            blocks=set(blocks or ()),
        )
        _add_counts(summary.visits_by_type, log.visits_by_type)
        _add_counts(summary.deposits_inspected, log.deposits_inspected)
        return summary


def _add_counts(target: dict[str, int], counts: Optional[Mapping[str, int]]) -> None:
    for code, count in (counts or {}).items():
        target[code] = target.get(code, 0) + count


def summarize_visits(
    visits: Iterable[Any],
    property_blocks: Mapping[Any, Any],
) -> Summary:
    """Fold a set of visits into a summary.

    Args:
        visits: Visits to fold. Several visits to the same property are
            all counted.
        property_blocks: Block identifier per property identifier, used
            for the distinct block count.

    Returns:
        Summary of the visits, with their identifiers retained.
    """
    summary = Summary()
    for visit in visits:
        summary.add_visit(visit, property_blocks.get(visit.property_id))
    return summary


def merge_summaries(summaries: Iterable[Summary]) -> Summary:
    """Add up several summaries into a new one."""
    total = Summary()
    for summary in summaries:
        total.merge(summary)
    return total


def normalize_block_numbers(numbers: Iterable[Any]) -> list[str]:
    """Deduplicate printed block numbers and sort them numerically.

    Numbers are compared by their printed form, so ``7`` and ``"7"`` are
    the same block; non-numeric entries sort after numeric ones.
    """
    printed = {str(number).strip() for number in numbers if str(number).strip()}
    return sorted(printed, key=lambda n: (not n.isdigit(), int(n) if n.isdigit() else 0, n))


def join_block_numbers(numbers: Iterable[Any], separator: str = ",") -> str:
    """Serialize block numbers as a delimited string."""
    return separator.join(normalize_block_numbers(numbers))


def split_block_numbers(text: str, separator: str = ",") -> list[str]:
    """Parse a delimited block number string back into numbers."""
    return normalize_block_numbers((text or "").split(separator))
