"""Calendar boundaries, all taken in the current Django time zone."""
from datetime import datetime, time, timedelta

from django.utils import timezone


def local_today(now=None):
    return timezone.localdate(now or timezone.now())


def start_of_day(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def day_bounds(day):
    """Aware ``[start, end)`` datetimes covering ``day``."""
    return start_of_day(day), start_of_day(day + timedelta(days=1))


def week_start(now=None):
    """Most recent Sunday 00:00 (today if today is Sunday)."""
    today = local_today(now)
    # weekday(): Monday is 0, Sunday is 6
    days_since_sunday = (today.weekday() + 1) % 7
    return start_of_day(today - timedelta(days=days_since_sunday))
