"""Admin configuration for the vector control campaign.

This module registers models with the Django admin site and configures
their display and filtering options. Rollup totals are read-only here;
they change only when a log is rebuilt.
"""

from django.contrib import admin

from .models import Agent, Area, Block, Cycle, DailyLog, Property, Visit, WeeklyLog

SUMMARY_FIELDS = [
    "total_blocks",
    "total_visits",
    "visits_by_type",
    "deposits_inspected",
    "deposits_eliminated",
    "larvicide_properties",
    "larvicide_quantity",
    "larvicide_deposits",
    "focus_properties",
    "total_foci",
]


@admin.register(Agent)
class AgentAdmin(admin.ModelAdmin):
    """Admin configuration for Agent model."""

    list_display = ["name", "document", "role", "is_active"]
    list_filter = ["role", "is_active"]
    search_fields = ["name", "document"]
    ordering = ["name"]


@admin.register(Area)
class AreaAdmin(admin.ModelAdmin):
    """Admin configuration for Area model."""

    list_display = ["name", "responsible", "map_url"]
    search_fields = ["name"]
    ordering = ["name"]


@admin.register(Block)
class BlockAdmin(admin.ModelAdmin):
    """Admin configuration for Block model."""

    list_display = [
        "area",
        "number",
        "total_properties",
        "assigned_to",
        "worked",
        "worked_by",
        "work_date",
    ]
    list_filter = ["area", "worked"]
    search_fields = ["area__name"]
    ordering = ["area", "number"]
    readonly_fields = [
        "total_properties",
        "residence_count",
        "commerce_count",
        "vacant_lot_count",
        "point_of_interest_count",
        "other_count",
        "inhabitants",
        "dogs",
        "cats",
    ]


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    """Admin configuration for Property model."""

    list_display = ["full_address", "block", "position", "property_type", "status"]
    list_filter = ["status", "property_type", "block__area"]
    search_fields = ["street", "number", "note"]
    ordering = ["block", "position"]


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    """Admin configuration for Visit model."""

    list_display = ["visit_date", "property", "agent", "property_type", "status", "foci"]
    list_filter = ["status", "property_type", "has_focus"]
    search_fields = ["agent__name", "property__street"]
    date_hierarchy = "visit_date"
    ordering = ["-visit_date"]

    def has_change_permission(self, request, obj=None) -> bool:
        return False


@admin.register(DailyLog)
class DailyLogAdmin(admin.ModelAdmin):
    """Admin configuration for DailyLog model."""

    list_display = ["date", "week", "agent", "area", "activity", "total_visits"]
    list_filter = ["week", "activity", "area", "cycle"]
    search_fields = ["agent__name", "area__name"]
    date_hierarchy = "date"
    ordering = ["-date"]
    readonly_fields = ["week", "visits", "blocks"] + SUMMARY_FIELDS


@admin.register(WeeklyLog)
class WeeklyLogAdmin(admin.ModelAdmin):
    """Admin configuration for WeeklyLog model."""

    list_display = [
        "week",
        "agent",
        "area",
        "activity",
        "days_worked",
        "total_visits",
        "cycle",
    ]
    list_filter = ["week", "activity", "area", "cycle"]
    search_fields = ["agent__name", "area__name"]
    ordering = ["-week"]
    readonly_fields = ["days_worked", "worked_blocks"] + SUMMARY_FIELDS


@admin.register(Cycle)
class CycleAdmin(admin.ModelAdmin):
    """Admin configuration for Cycle model."""

    list_display = ["number", "closed_at", "closed_by"]
    ordering = ["-number"]
    readonly_fields = ["number", "closed_at", "closed_by"]
