"""Tests for weekly log rollups."""

from datetime import date

import pytest
from django.test import override_settings

from campaign.exceptions import InvalidValue, NoDailyLogsFound
from campaign.models import Block, DailyLog, WeeklyLog
from campaign.rollups import build_daily_log, build_weekly_log, rebuild_weekly_logs
from campaign.visits import record_visit
from campaign.weeks import week_number

pytestmark = pytest.mark.django_db

MONDAY = date(2024, 3, 4)
WEDNESDAY = date(2024, 3, 6)
WEEK = week_number(MONDAY)


@pytest.fixture
def first_day(area, prop, agent):
    """One visit in block 1 on Monday, rolled into a daily log."""
    record_visit(prop.pk, agent.pk, "visited", visit_date=MONDAY)
    return build_daily_log(agent.pk, area.pk, MONDAY)


class TestBuildWeeklyLog:
    def test_single_daily_log(self, first_day, area, agent):
        log = build_weekly_log(agent.pk, area.pk, WEEK)

        assert log.total_visits == 1
        assert log.days_worked == 1
        assert log.total_blocks == 1
        assert log.worked_blocks == "1"
        assert log.notes == "Nenhuma observação."
        assert log.activity == 4
        assert log.cycle is None

    def test_two_daily_logs(self, first_day, area, make_property, agent):
        block_two = Block.objects.create(area=area, number=2)
        for _ in range(2):
            prop = make_property(target_block=block_two)
            record_visit(prop.pk, agent.pk, "visited", visit_date=WEDNESDAY)
        second_day = build_daily_log(agent.pk, area.pk, WEDNESDAY)
        assert second_day.total_visits == 2

        log = build_weekly_log(agent.pk, area.pk, WEEK)
        assert log.total_visits == 3
        assert log.days_worked == 2
        assert log.worked_blocks == "1,2"
        assert log.total_blocks == 2
        assert log.visits_by_type["r"] == 3

    def test_block_worked_on_two_days_counts_once(self, first_day, area, make_property, agent):
        record_visit(make_property().pk, agent.pk, "visited", visit_date=WEDNESDAY)
        build_daily_log(agent.pk, area.pk, WEDNESDAY)

        log = build_weekly_log(agent.pk, area.pk, WEEK)
        assert log.days_worked == 2
        assert log.total_blocks == 1
        assert log.worked_blocks == "1"

    def test_block_numbers_sort_numerically(self, area, make_property, agent):
        for number in (10, 9):
            block = Block.objects.create(area=area, number=number)
            record_visit(
                make_property(target_block=block).pk, agent.pk, "visited", visit_date=MONDAY
            )
        build_daily_log(agent.pk, area.pk, MONDAY)

        log = build_weekly_log(agent.pk, area.pk, WEEK)
        assert log.worked_blocks == "9,10"

    def test_daily_logs_are_untouched(self, first_day, area, agent):
        before = DailyLog.objects.get(pk=first_day.pk)
        build_weekly_log(agent.pk, area.pk, WEEK)
        after = DailyLog.objects.get(pk=first_day.pk)
        assert after.total_visits == before.total_visits
        assert after.updated_at == before.updated_at

    def test_rebuild_keeps_notes_and_activity(self, first_day, area, agent):
        first = build_weekly_log(agent.pk, area.pk, WEEK, activity=1, notes="Chuva na quarta.")
        second = build_weekly_log(agent.pk, area.pk, WEEK)

        assert second.pk == first.pk
        assert WeeklyLog.objects.count() == 1
        assert second.notes == "Chuva na quarta."
        assert second.activity == 1

    def test_activity_from_daily_logs(self, area, prop, agent):
        record_visit(prop.pk, agent.pk, "visited", visit_date=MONDAY)
        build_daily_log(agent.pk, area.pk, MONDAY, activity=5)

        log = build_weekly_log(agent.pk, area.pk, WEEK)
        assert log.activity == 5

    @override_settings(CAMPAIGN_BLOCK_SEPARATOR=";", CAMPAIGN_WEEKLY_NOTES_DEFAULT="")
    def test_settings(self, first_day, area, make_property, agent):
        block_two = Block.objects.create(area=area, number=2)
        record_visit(
            make_property(target_block=block_two).pk, agent.pk, "visited", visit_date=MONDAY
        )
        build_daily_log(agent.pk, area.pk, MONDAY)

        log = build_weekly_log(agent.pk, area.pk, WEEK)
        assert log.worked_blocks == "1;2"
        assert log.notes == ""

    def test_no_daily_logs(self, area, agent):
        with pytest.raises(NoDailyLogsFound):
            build_weekly_log(agent.pk, area.pk, WEEK)
        assert not WeeklyLog.objects.exists()

    @pytest.mark.parametrize("week", [0, -1, "10", None])
    def test_invalid_week(self, area, agent, week):
        with pytest.raises(InvalidValue):
            build_weekly_log(agent.pk, area.pk, week)


class TestRebuildWeeklyLogs:
    def test_rebuild(self, first_day, area, agent, other_agent, make_property):
        record_visit(make_property().pk, other_agent.pk, "visited", visit_date=WEDNESDAY)
        build_daily_log(other_agent.pk, area.pk, WEDNESDAY)

        assert rebuild_weekly_logs(WEEK) == 2
        assert rebuild_weekly_logs(WEEK, agent_id=agent.pk) == 1
        assert WeeklyLog.objects.count() == 2
        assert rebuild_weekly_logs(WEEK + 1) == 0
