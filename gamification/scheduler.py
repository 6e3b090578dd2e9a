"""
Nightly leaderboard snapshot job.

The scheduled run logs and swallows failures so a bad night only costs the
next day's rank movement. The manual trigger runs the same write path and lets
errors reach the operator.
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from django.conf import settings
from django.db import close_old_connections

from .leaderboard import create_daily_snapshots

logger = logging.getLogger(__name__)

JOB_ID = 'daily_leaderboard_snapshot'

scheduler = None


def handle_daily_snapshot():
    logger.info("Running daily leaderboard snapshot job...")
    close_old_connections()
    try:
        counts = create_daily_snapshots()
    except Exception:
        logger.exception("Failed to create daily leaderboard snapshot")
        return None
    finally:
        close_old_connections()

    logger.info("Daily leaderboard snapshot completed: %s", counts)
    return counts


def trigger_snapshot():
    logger.info("Manual snapshot trigger initiated")
    return create_daily_snapshots()


def schedule_daily_snapshot(target):
    """Register the snapshot job on an APScheduler scheduler."""
    target.add_job(
        handle_daily_snapshot,
        'cron',
        hour=getattr(settings, 'GAMIFICATION_SNAPSHOT_HOUR', 0),
        minute=getattr(settings, 'GAMIFICATION_SNAPSHOT_MINUTE', 0),
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return target


def start_scheduler():
    global scheduler
    if scheduler is not None and scheduler.running:
        return scheduler

    scheduler = schedule_daily_snapshot(BackgroundScheduler(timezone=settings.TIME_ZONE))
    scheduler.start()
    logger.info("Snapshot scheduler started (daily at %02d:%02d %s)",
                settings.GAMIFICATION_SNAPSHOT_HOUR, settings.GAMIFICATION_SNAPSHOT_MINUTE, settings.TIME_ZONE)
    return scheduler


def stop_scheduler():
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
    scheduler = None
