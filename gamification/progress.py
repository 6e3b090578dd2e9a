"""
Progress store operations.

Counters on UserProgress are only ever changed with single UPDATE statements
(``col = col + delta``) so concurrent lesson, streak and badge awards never
lose each other's writes. ``level``/``level_title`` are a cache of
``calculate_level(total_xp)``; every XP change goes through
:func:`increment_counters`, which bumps ``version`` together with the total and
then re-derives the level with a version-checked write.
"""
import logging
from dataclasses import dataclass, asdict

from django.conf import settings
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from .exceptions import ProgressConflict, ProgressNotFound
from .models import UserBadge, UserProgress
from .xp import calculate_level, level_title, xp_for_next_level, xp_in_current_level

logger = logging.getLogger(__name__)


@dataclass
class XpAward:
    total_xp: int
    level: int
    level_title: str
    leveled_up: bool
    xp_added: int

    def to_dict(self):
        return asdict(self)


def get_progress(user_id):
    try:
        return UserProgress.objects.select_related('user').get(user_id=user_id)
    except UserProgress.DoesNotExist:
        raise ProgressNotFound(user_id) from None


def increment_counters(user_id, total_xp=0, lessons_completed=0, now=None):
    """
    Atomically add to ``total_xp`` and/or ``lessons_completed``.

    Returns an :class:`XpAward` describing the state after the write. The
    increment and the level recompute commit together.
    """
    if total_xp < 0 or lessons_completed < 0:
        raise ValueError("Progress counters only move forward")

    now = now or timezone.now()
    updates = {'last_active_at': now}
    if total_xp:
        updates['total_xp'] = F('total_xp') + total_xp
        updates['version'] = F('version') + 1
    if lessons_completed:
        updates['lessons_completed'] = F('lessons_completed') + lessons_completed

    with transaction.atomic():
        if not UserProgress.objects.filter(user_id=user_id).update(**updates):
            raise ProgressNotFound(user_id)
        previous_level, level = _sync_level(user_id)

    progress = get_progress(user_id)
    leveled_up = level > previous_level
    if leveled_up:
        logger.info("User %s leveled up: %s -> %s (%s)", user_id, previous_level, level, progress.level_title)

    return XpAward(
        total_xp=progress.total_xp,
        level=progress.level,
        level_title=progress.level_title,
        leveled_up=leveled_up,
        xp_added=total_xp,
    )


def add_xp(user_id, xp, now=None):
    """The one entry point for awarding XP, whatever its source."""
    return increment_counters(user_id, total_xp=xp, now=now)


def _sync_level(user_id):
    """
    Bring the cached level in line with ``total_xp``.

    Optimistic: read total and version, write the derived level only if the
    version is unchanged, otherwise re-read and try again.
    Returns ``(cached_level_before, level)``.
    """
    attempts = getattr(settings, 'GAMIFICATION_LEVEL_SYNC_RETRIES', 5)
    for attempt in range(1, attempts + 1):
        row = (
            UserProgress.objects.filter(user_id=user_id)
            .values('total_xp', 'level', 'version')
            .first()
        )
        if row is None:
            raise ProgressNotFound(user_id)

        level = calculate_level(row['total_xp'])
        if level == row['level']:
            return row['level'], level

        written = UserProgress.objects.filter(user_id=user_id, version=row['version']).update(
            level=level,
            level_title=level_title(level),
        )
        if written:
            return row['level'], level

        logger.warning("Level sync for user %s lost a race (attempt %s/%s)", user_id, attempt, attempts)

    raise ProgressConflict(user_id, attempts)


def set_streak(user_id, current):
    """Set the current streak; the longest streak only ever grows."""
    updated = UserProgress.objects.filter(user_id=user_id).update(
        current_streak=current,
        longest_streak=Greatest(F('longest_streak'), Value(current)),
    )
    if not updated:
        raise ProgressNotFound(user_id)


def touch_last_active(user_id, now=None):
    updated = UserProgress.objects.filter(user_id=user_id).update(last_active_at=now or timezone.now())
    if not updated:
        raise ProgressNotFound(user_id)


def progress_summary(user_id):
    progress = get_progress(user_id)
    earned = (
        UserBadge.objects.filter(user_id=user_id)
        .select_related('badge')
        .order_by('earned_at')
    )
    return {
        'total_xp': progress.total_xp,
        'level': progress.level,
        'level_title': progress.level_title,
        'current_streak': progress.current_streak,
        'longest_streak': progress.longest_streak,
        'lessons_completed': progress.lessons_completed,
        'xp_in_current_level': xp_in_current_level(progress.total_xp),
        'xp_to_next_level': xp_for_next_level(progress.level) - progress.total_xp,
        'badges': [
            {
                'slug': ub.badge.slug,
                'name': ub.badge.name,
                'icon': ub.badge.icon,
                'earned_at': ub.earned_at,
            }
            for ub in earned
        ],
    }
