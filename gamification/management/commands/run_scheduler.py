from apscheduler.schedulers.blocking import BlockingScheduler
from django.conf import settings
from django.core.management.base import BaseCommand

from gamification.scheduler import schedule_daily_snapshot


class Command(BaseCommand):
    help = "Run the nightly leaderboard snapshot job in the foreground."

    def handle(self, *args, **options):
        scheduler = schedule_daily_snapshot(BlockingScheduler(timezone=settings.TIME_ZONE))
        self.stdout.write(
            f"Snapshot job scheduled daily at {settings.GAMIFICATION_SNAPSHOT_HOUR:02d}:"
            f"{settings.GAMIFICATION_SNAPSHOT_MINUTE:02d} {settings.TIME_ZONE}. Ctrl+C to stop."
        )
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            scheduler.shutdown()
