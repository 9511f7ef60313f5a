"""Daily and weekly rollups of field work.

This module contains functions that turn visits into daily logs and daily
logs into weekly logs. Rollups are snapshots: rebuilding a log replaces
the stored row for its key instead of adding to it.
"""

import logging
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

from django.db import transaction
from django.db.models import QuerySet
from django_filters import FilterSet

from .conf import get_setting
from .exceptions import InvalidValue, NoActivityFound, NoDailyLogsFound
from .filters import DailyLogFilter, WeeklyLogFilter
from .models import Activity, Agent, Area, Block, DailyLog, Property, Visit, WeeklyLog
from .store import parse_identifier, store
from .summary import (
    Summary,
    join_block_numbers,
    merge_summaries,
    normalize_block_numbers,
    summarize_visits,
)
from .weeks import to_day, week_number

logger = logging.getLogger(__name__)


def _check_activity(activity: Optional[int]) -> Optional[int]:
    if activity is not None and activity not in Activity.values:
        raise InvalidValue(f"Unknown activity code: {activity!r}")
    return activity


def collect_daily_visits(
    agent: Agent,
    area: Area,
    day: date,
) -> tuple[list[Visit], dict[Any, Any]]:
    """Select an agent's visits on one day to properties of one area.

    The property → block → area chain is resolved with one query per
    level instead of a join.

    Returns:
        The visits, oldest first, and the block identifier of each visited
        property.
    """
    area_blocks = set(
        Block.objects.filter(area=area).values_list("pk", flat=True)
    )
    day_visits = Visit.objects.filter(agent=agent, visit_date=day)
    visited_properties = set(day_visits.values_list("property_id", flat=True))
    property_blocks = dict(
        Property.objects.filter(
            pk__in=visited_properties,
            block_id__in=area_blocks,
        ).values_list("pk", "block_id")
    )
    visits = list(
        day_visits.filter(property_id__in=property_blocks.keys()).order_by(
            "created_at"
        )
    )
    return visits, property_blocks


def build_daily_log(
    agent_id: Any,
    area_id: Any,
    day: Union[date, datetime, str],
    activity: Optional[int] = None,
) -> DailyLog:
    """Build or rebuild the daily log of an agent in an area.

    Args:
        agent_id: Agent whose work is summarized.
        area_id: Area the work was done in.
        day: Day to summarize.
        activity: Activity code to report. Defaults to the activity of
            the existing log, or CAMPAIGN_DEFAULT_ACTIVITY.

    Returns:
        The stored DailyLog, replacing any previous one for the same
        agent, area and day.

    Raises:
        NoActivityFound: If the agent neither visited properties nor
            worked blocks in the area that day.
    """
    agent_key = parse_identifier(agent_id)
    area_key = parse_identifier(area_id)
    day = to_day(day)
    _check_activity(activity)

    with transaction.atomic():
        # One rebuild per agent at a time
        agent = store.get(Agent, agent_key, for_update=True)
        area = store.get(Area, area_key)

        visits, property_blocks = collect_daily_visits(agent, area, day)
        worked_blocks = store.find(
            Block,
            {"area": area, "worked_by": agent, "work_date": day},
        )
        if not visits and not worked_blocks.exists():
            raise NoActivityFound(
                f"No activity for {agent.name} in {area.name} on {day}",
                agent=agent.pk,
                area=area.pk,
                date=day,
            )

        summary = summarize_visits(visits, property_blocks)
        if activity is None:
            existing = DailyLog.objects.filter(agent=agent, area=area, date=day).first()
            activity = (
                existing.activity
                if existing
                else get_setting("CAMPAIGN_DEFAULT_ACTIVITY")
            )

        log, created = DailyLog.objects.update_or_create(
            agent=agent,
            area=area,
            date=day,
            defaults={
                "week": week_number(day),
                "activity": activity,
                **summary.to_fields(),
            },
        )
        log.visits.set(summary.visit_ids)
        log.blocks.set(summary.blocks)

    logger.info(
        f"{'Created' if created else 'Rebuilt'} daily log for {agent.name} in "
        f"{area.name} on {day}: {summary.total_visits} visits, "
        f"{summary.total_blocks} blocks"
    )
    return log


def daily_log_visits(log_id: Any) -> QuerySet:
    """Get the exact visits a daily log was built from."""
    log = store.get(DailyLog, log_id)
    return log.visits.select_related("property").order_by("created_at")


def build_weekly_log(
    agent_id: Any,
    area_id: Any,
    week: int,
    activity: Optional[int] = None,
    notes: Optional[str] = None,
) -> WeeklyLog:
    """Build or rebuild the weekly log of an agent in an area.

    Daily logs are added up field by field. Blocks are tracked by their
    printed number, so the weekly block count is the number of distinct
    numbers across the daily logs. The daily logs are left untouched.

    Only daily logs not yet closed into a cycle are folded, and only the
    open weekly log of the key is replaced. A weekly log closed into a
    cycle keeps its totals when the same week number comes back the
    next year.

    Args:
        agent_id: Agent whose work is summarized.
        area_id: Area the work was done in.
        week: Campaign week number.
        activity: Activity code to report. Defaults to the existing log's,
            else the daily logs' when they all agree, else
            CAMPAIGN_DEFAULT_ACTIVITY.
        notes: Free-text notes. Defaults to the existing log's, else
            CAMPAIGN_WEEKLY_NOTES_DEFAULT.

    Returns:
        The stored open WeeklyLog.

    Raises:
        NoDailyLogsFound: If no open daily log matches the agent, area
            and week.
    """
    agent_key = parse_identifier(agent_id)
    area_key = parse_identifier(area_id)
    _check_activity(activity)
    if not isinstance(week, int) or isinstance(week, bool) or week < 1:
        raise InvalidValue(f"Invalid week number: {week!r}")

    with transaction.atomic():
        agent = store.get(Agent, agent_key, for_update=True)
        area = store.get(Area, area_key)

        daily_logs = list(
            store.find(
                DailyLog,
                {
                    "agent": agent,
                    "area": area,
                    "week": week,
                    "cycle__isnull": True,
                },
                order_by=["date"],
            ).prefetch_related("blocks")
        )
        if not daily_logs:
            raise NoDailyLogsFound(
                f"No daily logs for {agent.name} in {area.name} in week {week}",
                agent=agent.pk,
                area=area.pk,
                week=week,
            )

        summary = merge_summaries(
            Summary.from_log(log, blocks=[str(block.number) for block in log.blocks.all()])
            for log in daily_logs
        )
        block_numbers = normalize_block_numbers(summary.blocks)
        days_worked = len({log.date for log in daily_logs})

        existing = WeeklyLog.objects.filter(
            agent=agent, area=area, week=week, cycle__isnull=True
        ).first()
        if activity is None:
            daily_activities = {log.activity for log in daily_logs}
            if existing:
                activity = existing.activity
            elif len(daily_activities) == 1:
                activity = daily_activities.pop()
            else:
                activity = get_setting("CAMPAIGN_DEFAULT_ACTIVITY")
        if notes is None:
            notes = (
                existing.notes
                if existing
                else get_setting("CAMPAIGN_WEEKLY_NOTES_DEFAULT")
            )

        fields = summary.to_fields()
        fields["total_blocks"] = len(block_numbers)
        log, created = WeeklyLog.objects.update_or_create(
            agent=agent,
            area=area,
            week=week,
            cycle=None,
            defaults={
                "activity": activity,
                "notes": notes,
                "days_worked": days_worked,
                "worked_blocks": join_block_numbers(
                    block_numbers,
                    get_setting("CAMPAIGN_BLOCK_SEPARATOR"),
                ),
                **fields,
            },
        )

    logger.info(
        f"{'Created' if created else 'Rebuilt'} weekly log for {agent.name} in "
        f"{area.name}, week {week}: {days_worked} days, "
        f"{summary.total_visits} visits"
    )
    return log


def rebuild_daily_logs(
    day: Union[date, datetime, str],
    agent_id: Optional[Any] = None,
    area_id: Optional[Any] = None,
) -> int:
    """Rebuild the daily logs of every agent and area with activity on ``day``.

    Args:
        day: Day to rebuild.
        agent_id: Only rebuild this agent's logs.
        area_id: Only rebuild logs of this area.

    Returns:
        Number of daily logs built.
    """
    day = to_day(day)
    visit_filters: dict[str, Any] = {"visit_date": day}
    block_filters: dict[str, Any] = {"work_date": day, "worked_by__isnull": False}
    if agent_id is not None:
        visit_filters["agent_id"] = parse_identifier(agent_id)
        block_filters["worked_by_id"] = parse_identifier(agent_id)
    if area_id is not None:
        visit_filters["property__block__area_id"] = parse_identifier(area_id)
        block_filters["area_id"] = parse_identifier(area_id)

    keys = set(
        store.find(Visit, visit_filters).values_list(
            "agent_id", "property__block__area_id"
        )
    )
    keys |= set(store.find(Block, block_filters).values_list("worked_by_id", "area_id"))

    logger.info(f"Rebuilding {len(keys)} daily logs for {day}...")
    built = 0
    for agent_key, area_key in sorted(keys, key=str):
        build_daily_log(agent_key, area_key, day)
        built += 1
    return built


def rebuild_weekly_logs(
    week: int,
    agent_id: Optional[Any] = None,
    area_id: Optional[Any] = None,
) -> int:
    """Rebuild the open weekly logs of every key with open daily logs in ``week``.

    Returns:
        Number of weekly logs built.
    """
    filters: dict[str, Any] = {"week": week, "cycle__isnull": True}
    if agent_id is not None:
        filters["agent_id"] = parse_identifier(agent_id)
    if area_id is not None:
        filters["area_id"] = parse_identifier(area_id)

    keys = set(store.find(DailyLog, filters).values_list("agent_id", "area_id"))
    logger.info(f"Rebuilding {len(keys)} weekly logs for week {week}...")
    for agent_key, area_key in sorted(keys, key=str):
        build_weekly_log(agent_key, area_key, week)
    return len(keys)


def find_daily_logs(params: Mapping[str, Any]) -> QuerySet:
    """Query daily logs by agent, area, week and date range."""
    queryset = DailyLog.objects.select_related("agent", "area").order_by("-date")
    return _filtered(DailyLogFilter(params, queryset=queryset))


def find_weekly_logs(params: Mapping[str, Any]) -> QuerySet:
    """Query weekly logs by agent, area, week and cycle."""
    queryset = WeeklyLog.objects.select_related("agent", "area").order_by("-week")
    return _filtered(WeeklyLogFilter(params, queryset=queryset))


def _filtered(filterset: FilterSet) -> QuerySet:
    if not filterset.is_valid():
        raise InvalidValue(
            f"Invalid filters: {filterset.errors.as_json()}",
            errors=filterset.errors,
        )
    return filterset.qs
