from django.core.management.base import BaseCommand

from gamification.scheduler import trigger_snapshot


class Command(BaseCommand):
    help = "Record today's global and weekly leaderboard snapshots (safe to re-run)."

    def handle(self, *args, **options):
        counts = trigger_snapshot()
        for kind, count in counts.items():
            self.stdout.write(self.style.SUCCESS(f"{kind}: {count} ranked users"))
