"""Models for the vector control campaign.

This module contains the territory hierarchy (areas, blocks, properties),
field agents, the visit events they record, and the daily, weekly and
cycle rollups computed from those visits.
"""

import uuid
from decimal import Decimal
from typing import Optional

from django.db import models
from django.utils import timezone


class PropertyType(models.TextChoices):
    """Kinds of property inspected during a visit."""

    RESIDENCE = "r", "Residence"
    COMMERCE = "c", "Commerce"
    VACANT_LOT = "tb", "Vacant lot"
    POINT_OF_INTEREST = "pe", "Point of interest"
    OTHER = "out", "Other"


class PropertyStatus(models.TextChoices):
    """Outcome of the last visit to a property in the current cycle."""

    CLOSED = "closed", "Closed"
    VISITED = "visited", "Visited"
    REFUSED = "refused", "Refused"


class DepositCategory(models.TextChoices):
    """Container categories counted when inspecting a property."""

    A1 = "a1", "A1 - Elevated water tank"
    A2 = "a2", "A2 - Ground-level water storage"
    B = "b", "B - Small movable container"
    C = "c", "C - Fixed container"
    D1 = "d1", "D1 - Tyre"
    D2 = "d2", "D2 - Rubbish"
    E = "e", "E - Natural container"


class Activity(models.IntegerChoices):
    """Field activity codes reported on daily and weekly logs."""

    LI = 1, "Survey (LI)"
    LI_T = 2, "Survey and treatment (LI+T)"
    PE = 3, "Strategic point (PE)"
    T = 4, "Treatment (T)"
    DF = 5, "Delimitation of focus (DF)"
    PVE = 6, "Entomological surveillance (PVE)"


# Block counter incremented when a property of the given type is created
TYPE_COUNTER_FIELDS = {
    PropertyType.RESIDENCE.value: "residence_count",
    PropertyType.COMMERCE.value: "commerce_count",
    PropertyType.VACANT_LOT.value: "vacant_lot_count",
    PropertyType.POINT_OF_INTEREST.value: "point_of_interest_count",
    PropertyType.OTHER.value: "other_count",
}


def empty_type_counts() -> dict[str, int]:
    """Return a zeroed counter per property type code."""
    return {code: 0 for code in PropertyType.values}


def empty_deposit_counts() -> dict[str, int]:
    """Return a zeroed counter per deposit category code."""
    return {code: 0 for code in DepositCategory.values}


class Agent(models.Model):
    """A field agent, supervisor or campaign administrator.

    Attributes:
        name: Full name of the agent.
        document: National document number, unique per agent.
        role: What the agent is allowed to do.
    """

    class Role(models.TextChoices):
        """Roles an agent can hold."""

        AGENT = "agent", "Agent"
        ADMINISTRATOR = "administrator", "Administrator"
        SUPERVISOR = "supervisor", "Supervisor"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150, db_index=True)
    document = models.CharField(max_length=20, unique=True)
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.AGENT,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Meta options for Agent model."""

        verbose_name = "Agent"
        verbose_name_plural = "Agents"
        ordering = ["name"]

    def __str__(self) -> str:
        """Return string representation of the agent.

        Returns:
            Agent name.
        """
        return self.name

    @property
    def is_administrator(self) -> bool:
        """Check whether the agent may run cycle-wide operations.

        Returns:
            True for administrators.
        """
        return self.role == self.Role.ADMINISTRATOR


class Area(models.Model):
    """A territory unit under campaign management.

    Attributes:
        name: Name of the area.
        map_url: Link to the external map of the area.
        responsible: Agent in charge of the area, if any.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150)
    map_url = models.URLField(max_length=500)
    responsible = models.ForeignKey(
        Agent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="responsible_areas",
    )

    class Meta:
        """Meta options for Area model."""

        verbose_name = "Area"
        verbose_name_plural = "Areas"
        ordering = ["name"]

    def __str__(self) -> str:
        """Return string representation of the area.

        Returns:
            Area name.
        """
        return self.name


class Block(models.Model):
    """A numbered subdivision of an area.

    Counters are maintained with atomic increments as properties are
    created, so they are never recomputed from the property table.

    Attributes:
        area: Area the block belongs to.
        number: Sequence number, unique within the area.
        assigned_to: Agent currently assigned to work the block.
        worked_by: Agent that last worked the block.
        work_date: Day the block was last worked.
        worked: Whether the block was worked in the current cycle.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    area = models.ForeignKey(
        Area,
        on_delete=models.CASCADE,
        related_name="blocks",
    )
    number = models.PositiveIntegerField()

    total_properties = models.IntegerField(default=0)
    residence_count = models.IntegerField(default=0)
    commerce_count = models.IntegerField(default=0)
    vacant_lot_count = models.IntegerField(default=0)
    point_of_interest_count = models.IntegerField(default=0)
    other_count = models.IntegerField(default=0)
    inhabitants = models.IntegerField(default=0)
    dogs = models.IntegerField(default=0)
    cats = models.IntegerField(default=0)

    assigned_to = models.ForeignKey(
        Agent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_blocks",
    )
    work_date = models.DateField(null=True, blank=True, db_index=True)
    worked_by = models.ForeignKey(
        Agent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="worked_blocks",
    )
    worked = models.BooleanField(default=False, db_index=True)

    class Meta:
        """Meta options for Block model."""

        verbose_name = "Block"
        verbose_name_plural = "Blocks"
        ordering = ["area", "number"]
        constraints = [
            models.UniqueConstraint(
                fields=["area", "number"],
                name="unique_block_number_per_area",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation of the block.

        Returns:
            Area name and block number.
        """
        return f"{self.area.name} - Block {self.number}"

    @property
    def assignment_state(self) -> str:
        """Get the work-assignment state of the block.

        Returns:
            One of ``worked``, ``assigned`` or ``unassigned``.
        """
        if self.worked:
            return "worked"
        if self.assigned_to_id is not None:
            return "assigned"
        return "unassigned"


class Property(models.Model):
    """A single address inside a block, subject to inspection.

    Attributes:
        block: Block the property belongs to.
        position: Order of the property inside its block.
        property_type: Kind of property.
        status: Outcome of the last visit in the current cycle.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    block = models.ForeignKey(
        Block,
        on_delete=models.CASCADE,
        related_name="properties",
    )
    position = models.PositiveIntegerField()

    street = models.CharField(max_length=255)
    number = models.CharField(max_length=20, blank=True, default="")
    complement = models.CharField(max_length=100, blank=True, default="")

    property_type = models.CharField(
        max_length=3,
        choices=PropertyType.choices,
        default=PropertyType.RESIDENCE,
    )
    inhabitants = models.IntegerField(default=0)
    dogs = models.IntegerField(default=0)
    cats = models.IntegerField(default=0)
    note = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10,
        choices=PropertyStatus.choices,
        default=PropertyStatus.CLOSED,
        db_index=True,
    )

    class Meta:
        """Meta options for Property model."""

        verbose_name = "Property"
        verbose_name_plural = "Properties"
        ordering = ["block", "position"]
        constraints = [
            models.UniqueConstraint(
                fields=["block", "position"],
                name="unique_property_position_per_block",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation of the property.

        Returns:
            Address string.
        """
        return self.full_address

    @property
    def full_address(self) -> str:
        """Get the full formatted address.

        Returns:
            Street, number and complement joined.
        """
        address_line = " ".join(filter(None, [self.street, self.number]))
        if self.complement:
            return f"{address_line}, {self.complement}"
        return address_line


class Visit(models.Model):
    """An inspection of a property by an agent.

    Visits are immutable once recorded. The property type is copied at
    visit time so later edits of the property do not change past rollups.

    Attributes:
        property: Property that was visited.
        agent: Agent that made the visit.
        property_type: Snapshot of the property type at visit time.
        visit_date: Day of the visit.
        deposits_inspected: Inspections per deposit category code.
        foci: Number of foci found.
        status: Outcome of the visit, copied to the property.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="visits",
    )
    agent = models.ForeignKey(
        Agent,
        on_delete=models.PROTECT,
        related_name="visits",
    )
    property_type = models.CharField(max_length=3, choices=PropertyType.choices)
    visit_date = models.DateField(default=timezone.localdate, db_index=True)
    deposits_inspected = models.JSONField(default=empty_deposit_counts)
    deposits_eliminated = models.IntegerField(default=0)
    sample_start = models.IntegerField(default=0)
    sample_end = models.IntegerField(default=0)
    foci = models.IntegerField(default=0)
    has_focus = models.BooleanField(default=False)
    larvicide_quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    deposits_treated = models.IntegerField(default=0)
    status = models.CharField(
        max_length=10,
        choices=PropertyStatus.choices,
        default=PropertyStatus.CLOSED,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Meta options for Visit model."""

        verbose_name = "Visit"
        verbose_name_plural = "Visits"
        ordering = ["-visit_date", "-created_at"]
        indexes = [
            models.Index(fields=["agent", "visit_date"]),
        ]

    def __str__(self) -> str:
        """Return string representation of the visit.

        Returns:
            Visit date and outcome.
        """
        return f"Visit {self.visit_date} ({self.get_status_display()})"


class Cycle(models.Model):
    """A closed campaign sweep over the whole territory.

    Attributes:
        number: Sequence number of the cycle.
        closed_at: When the cycle was closed.
        closed_by: Administrator that closed the cycle.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    number = models.PositiveIntegerField(unique=True)
    closed_at = models.DateTimeField(default=timezone.now)
    closed_by = models.ForeignKey(
        Agent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="closed_cycles",
    )

    class Meta:
        """Meta options for Cycle model."""

        verbose_name = "Cycle"
        verbose_name_plural = "Cycles"
        ordering = ["-number"]
        get_latest_by = "number"

    def __str__(self) -> str:
        """Return string representation of the cycle.

        Returns:
            Cycle number.
        """
        return f"Cycle {self.number}"

    @classmethod
    def get_current(cls) -> Optional["Cycle"]:
        """Get the most recently closed cycle.

        Returns:
            The latest Cycle or None if no cycle was closed yet.
        """
        return cls.objects.order_by("-number").first()


class SummaryFields(models.Model):
    """Rollup totals shared by daily and weekly logs."""

    total_blocks = models.IntegerField(default=0)
    total_visits = models.IntegerField(default=0)
    visits_by_type = models.JSONField(default=empty_type_counts)
    deposits_inspected = models.JSONField(default=empty_deposit_counts)
    deposits_eliminated = models.IntegerField(default=0)
    larvicide_properties = models.IntegerField(default=0)
    larvicide_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    larvicide_deposits = models.IntegerField(default=0)
    focus_properties = models.IntegerField(default=0)
    total_foci = models.IntegerField(default=0)

    class Meta:
        abstract = True


class DailyLog(SummaryFields):
    """Rollup of one agent's visits in one area on one day.

    Recomputing a daily log replaces the previous row for the same
    agent, area and date.

    Attributes:
        agent: Agent the log belongs to.
        area: Area the visits were made in.
        week: Campaign week number of ``date``.
        date: Day of the log.
        activity: Activity code reported for the day.
        visits: Visits that contributed to the totals.
        blocks: Distinct blocks of the visited properties.
        cycle: Cycle the log was closed into, if any. Weekly rollups only
            fold logs that are not linked yet.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agent = models.ForeignKey(
        Agent,
        on_delete=models.CASCADE,
        related_name="daily_logs",
    )
    area = models.ForeignKey(
        Area,
        on_delete=models.CASCADE,
        related_name="daily_logs",
    )
    week = models.PositiveIntegerField(db_index=True)
    date = models.DateField(db_index=True)
    activity = models.PositiveSmallIntegerField(
        choices=Activity.choices,
        default=Activity.T,
    )
    visits = models.ManyToManyField(
        Visit,
        blank=True,
        related_name="daily_logs",
    )
    blocks = models.ManyToManyField(
        Block,
        blank=True,
        related_name="daily_logs",
    )
    cycle = models.ForeignKey(
        Cycle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="daily_logs",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Meta options for DailyLog model."""

        verbose_name = "Daily Log"
        verbose_name_plural = "Daily Logs"
        ordering = ["-date"]
        constraints = [
            models.UniqueConstraint(
                fields=["agent", "area", "date"],
                name="unique_daily_log_per_agent_area_date",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation of the daily log.

        Returns:
            Agent name, area name and date.
        """
        return f"{self.agent.name} - {self.area.name} - {self.date}"


class WeeklyLog(SummaryFields):
    """Rollup of one agent's daily logs in one area for one week.

    Week numbers repeat every year, so only one log per agent, area and
    week may be open. Logs closed into a cycle are never rebuilt.

    Attributes:
        agent: Agent the log belongs to.
        area: Area the work was done in.
        week: Campaign week number.
        days_worked: Number of distinct days with a daily log.
        worked_blocks: Delimited, sorted, deduplicated block numbers.
        cycle: Cycle the log was closed into, if any.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agent = models.ForeignKey(
        Agent,
        on_delete=models.CASCADE,
        related_name="weekly_logs",
    )
    area = models.ForeignKey(
        Area,
        on_delete=models.CASCADE,
        related_name="weekly_logs",
    )
    week = models.PositiveIntegerField(db_index=True)
    activity = models.PositiveSmallIntegerField(
        choices=Activity.choices,
        default=Activity.T,
    )
    days_worked = models.IntegerField(default=0)
    notes = models.TextField(blank=True, default="")
    worked_blocks = models.TextField(blank=True, default="")
    cycle = models.ForeignKey(
        Cycle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="weekly_logs",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Meta options for WeeklyLog model."""

        verbose_name = "Weekly Log"
        verbose_name_plural = "Weekly Logs"
        ordering = ["-week"]
        constraints = [
            models.UniqueConstraint(
                fields=["agent", "area", "week"],
                condition=models.Q(cycle__isnull=True),
                name="unique_open_weekly_log_per_agent_area_week",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation of the weekly log.

        Returns:
            Agent name, area name and week number.
        """
        return f"{self.agent.name} - {self.area.name} - week {self.week}"
