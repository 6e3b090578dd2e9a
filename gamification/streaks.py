"""
Daily check-in streaks.

One StreakLog row per user per local calendar day. The (user, date) unique
constraint decides concurrent check-ins: whoever loses the insert is reported
as already checked in.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import timedelta
from typing import List

from django.db import IntegrityError, transaction
from django.utils import timezone

from .badges import check_and_award_badges
from .dates import local_today
from .models import StreakLog
from .progress import add_xp, get_progress, set_streak
from .xp import streak_bonus

logger = logging.getLogger(__name__)


@dataclass
class CheckinResult:
    current_streak: int
    longest_streak: int
    streak_bonus_xp: int
    already_checked_in: bool
    new_badges: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def checkin(user_id, now=None):
    now = now or timezone.now()
    today = local_today(now)
    progress = get_progress(user_id)

    if StreakLog.objects.filter(user_id=user_id, date=today).exists():
        return _already_checked_in(progress)

    # A missed day breaks the chain
    continued = StreakLog.objects.filter(user_id=user_id, date=today - timedelta(days=1)).exists()
    new_streak = progress.current_streak + 1 if continued else 1
    bonus = streak_bonus(new_streak)

    try:
        with transaction.atomic():
            StreakLog.objects.create(user_id=user_id, date=today, bonus_xp=bonus)
            set_streak(user_id, new_streak)
            add_xp(user_id, bonus, now=now)
    except IntegrityError:
        logger.warning("Concurrent check-in for user %s on %s, keeping the first one", user_id, today)
        return _already_checked_in(get_progress(user_id))

    logger.info("User %s checked in on %s: streak %s (+%s XP)", user_id, today, new_streak, bonus)

    new_badges = check_and_award_badges(user_id, now=now)
    progress = get_progress(user_id)
    return CheckinResult(
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        streak_bonus_xp=bonus,
        already_checked_in=False,
        new_badges=[b.slug for b in new_badges],
    )


def effective_streak(user_id, now=None):
    """
    The streak as it stands at ``now``.

    ``current_streak`` is only rewritten at the next check-in, so a chain that
    broke since then still shows its old length. Without a check-in today or
    yesterday the streak counts as 0.
    """
    today = local_today(now)
    alive = StreakLog.objects.filter(
        user_id=user_id,
        date__gte=today - timedelta(days=1),
        date__lte=today,
    ).exists()
    if not alive:
        return 0
    return get_progress(user_id).current_streak


def _already_checked_in(progress):
    return CheckinResult(
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        streak_bonus_xp=0,
        already_checked_in=True,
    )
