"""Management command to rebuild daily and weekly logs.

This command is meant to be run at the end of each field day, and at the
end of each week, to refresh the rollups from the recorded visits.
"""

import logging
from typing import Any

from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.utils import timezone

from campaign.exceptions import CampaignError
from campaign.rollups import rebuild_daily_logs, rebuild_weekly_logs
from campaign.weeks import to_day, week_dates, week_number

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Django management command for rebuilding campaign rollups.

    By default, it rebuilds today's daily logs and then the weekly logs of
    the current week.

    Examples:
        # Rebuild today's daily logs and this week's weekly logs
        python manage.py rebuild_rollups

        # Rebuild the daily logs of a given day
        python manage.py rebuild_rollups --date 2024-03-04 --daily-only

        # Rebuild every day of a week, then its weekly logs
        python manage.py rebuild_rollups --week 10 --year 2024

        # Only one agent in one area
        python manage.py rebuild_rollups --agent <uuid> --area <uuid>
    """

    help = "Rebuild campaign daily and weekly logs from recorded visits"

    def add_arguments(self, parser: CommandParser) -> None:
        """Add command-line arguments.

        Args:
            parser: The argument parser to add arguments to.
        """
        parser.add_argument(
            "--date",
            default=None,
            help="Day to rebuild, YYYY-MM-DD (default: today)",
        )
        parser.add_argument(
            "--week",
            type=int,
            default=None,
            help="Week to rebuild; every day of the week is rebuilt first",
        )
        parser.add_argument(
            "--year",
            type=int,
            default=None,
            help="Year of --week (default: current year)",
        )
        parser.add_argument("--agent", default=None, help="Only this agent")
        parser.add_argument("--area", default=None, help="Only this area")
        parser.add_argument(
            "--daily-only",
            action="store_true",
            help="Do not rebuild weekly logs",
        )
        parser.add_argument(
            "--weekly-only",
            action="store_true",
            help="Only rebuild weekly logs from the existing daily logs",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the command.

        Args:
            *args: Positional arguments.
            **options: Keyword arguments from command line.
        """
        agent = options["agent"]
        area = options["area"]

        try:
            if options["week"] is not None:
                week = options["week"]
                year = options["year"] or timezone.localdate().year
                days = week_dates(year, week)
                if not days:
                    raise CommandError(f"Week {week} is not part of {year}")
            else:
                day = to_day(options["date"]) if options["date"] else timezone.localdate()
                week = week_number(day)
                days = [day]

            self.stdout.write(
                self.style.NOTICE(
                    f"Rebuilding rollups at {timezone.now().strftime('%Y-%m-%d %H:%M:%S')}"
                )
            )

            if not options["weekly_only"]:
                for day in days:
                    self.stdout.write(f"Rebuilding daily logs for {day}...")
                    count = rebuild_daily_logs(day, agent_id=agent, area_id=area)
                    self.stdout.write(self.style.SUCCESS(f"Updated {count} daily logs"))

            if not options["daily_only"]:
                self.stdout.write(f"Rebuilding weekly logs for week {week}...")
                count = rebuild_weekly_logs(week, agent_id=agent, area_id=area)
                self.stdout.write(self.style.SUCCESS(f"Updated {count} weekly logs"))

        except CampaignError as e:
            logger.exception("Rollup rebuild failed")
            raise CommandError(f"Rebuild failed: {e}") from e
