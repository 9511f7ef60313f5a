"""Django filters for campaign rollups.

This module contains filter classes for querying daily and weekly logs by
agent, area, week and date.
"""

import django_filters
from django.db.models import QuerySet

from .models import Activity, DailyLog, WeeklyLog


class DailyLogFilter(django_filters.FilterSet):
    """Filter for daily logs.

    Allows filtering by agent, area, week, activity and date range.
    """

    agent = django_filters.UUIDFilter(field_name="agent_id", label="Agent")
    agent_name = django_filters.CharFilter(
        method="filter_agent_name",
        label="Agent Name",
    )
    area = django_filters.UUIDFilter(field_name="area_id", label="Area")
    week = django_filters.NumberFilter(field_name="week", label="Week")
    activity = django_filters.ChoiceFilter(
        field_name="activity",
        choices=Activity.choices,
        label="Activity",
    )
    date_after = django_filters.DateFilter(
        field_name="date",
        lookup_expr="gte",
        label="From",
    )
    date_before = django_filters.DateFilter(
        field_name="date",
        lookup_expr="lte",
        label="Until",
    )

    class Meta:
        """Meta options for DailyLogFilter."""

        model = DailyLog
        fields = [
            "agent",
            "agent_name",
            "area",
            "week",
            "activity",
            "date_after",
            "date_before",
        ]

    def filter_agent_name(self, queryset: QuerySet, name: str, value: str) -> QuerySet:
        """Filter logs by agent name.

        Args:
            queryset: The queryset to filter.
            name: The filter field name.
            value: The search value.

        Returns:
            Filtered queryset.
        """
        if not value:
            return queryset
        return queryset.filter(agent__name__icontains=value)


class WeeklyLogFilter(django_filters.FilterSet):
    """Filter for weekly logs.

    Allows filtering by agent, area, week range and cycle linkage.
    """

    agent = django_filters.UUIDFilter(field_name="agent_id", label="Agent")
    area = django_filters.UUIDFilter(field_name="area_id", label="Area")
    week = django_filters.NumberFilter(field_name="week", label="Week")
    week_from = django_filters.NumberFilter(
        field_name="week",
        lookup_expr="gte",
        label="From week",
    )
    week_to = django_filters.NumberFilter(
        field_name="week",
        lookup_expr="lte",
        label="To week",
    )
    cycle = django_filters.UUIDFilter(field_name="cycle_id", label="Cycle")
    open_cycle = django_filters.BooleanFilter(
        field_name="cycle",
        lookup_expr="isnull",
        label="Not yet closed into a cycle",
    )

    class Meta:
        """Meta options for WeeklyLogFilter."""

        model = WeeklyLog
        fields = ["agent", "area", "week", "week_from", "week_to", "cycle", "open_cycle"]
