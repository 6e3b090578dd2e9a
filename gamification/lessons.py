"""
Lesson completion: the main source of XP and of the weekly leaderboard.

Lesson content lives elsewhere; callers pass the lesson's base XP and
estimated duration.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import List

from django.db import IntegrityError, transaction
from django.utils import timezone

from .badges import check_and_award_badges
from .dates import day_bounds, local_today
from .exceptions import LessonAlreadyCompleted
from .models import LessonCompletion
from .progress import XpAward, get_progress, increment_counters
from .streaks import effective_streak
from .xp import LessonXpBreakdown, MultiplierResult, apply_daily_multipliers, lesson_completion_xp

logger = logging.getLogger(__name__)


@dataclass
class LessonResult:
    lesson_id: str
    xp_earned: int
    breakdown: LessonXpBreakdown
    multipliers: MultiplierResult
    progress: XpAward
    completed_at: object
    new_badges: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def is_first_completion_today(user_id, now=None):
    start, end = day_bounds(local_today(now))
    return not LessonCompletion.objects.filter(
        user_id=user_id,
        completed_at__gte=start,
        completed_at__lt=end,
    ).exists()


def complete_lesson(user_id, lesson_id, base_xp, estimated_minutes, time_spent_seconds,
                    quiz_score=None, now=None):
    now = now or timezone.now()
    get_progress(user_id)

    if LessonCompletion.objects.filter(user_id=user_id, lesson_id=lesson_id).exists():
        raise LessonAlreadyCompleted(user_id, lesson_id)

    breakdown = lesson_completion_xp(base_xp, time_spent_seconds, estimated_minutes, quiz_score)
    multipliers = apply_daily_multipliers(
        breakdown.total,
        effective_streak(user_id, now),
        is_first_completion_today(user_id, now),
    )

    try:
        with transaction.atomic():
            completion = LessonCompletion.objects.create(
                user_id=user_id,
                lesson_id=lesson_id,
                xp_earned=multipliers.total,
                time_spent_seconds=time_spent_seconds,
                completed_at=now,
            )
            award = increment_counters(
                user_id,
                total_xp=multipliers.total,
                lessons_completed=1,
                now=now,
            )
    except IntegrityError:
        raise LessonAlreadyCompleted(user_id, lesson_id) from None

    logger.info("User %s completed lesson %s (+%s XP)", user_id, lesson_id, multipliers.total)

    new_badges = check_and_award_badges(user_id, now=now)
    return LessonResult(
        lesson_id=lesson_id,
        xp_earned=multipliers.total,
        breakdown=breakdown,
        multipliers=multipliers,
        progress=award,
        completed_at=completion.completed_at,
        new_badges=[b.slug for b in new_badges],
    )
