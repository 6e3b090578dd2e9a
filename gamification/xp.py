"""
XP and level calculations.

Pure functions only: no database access, no clock. Everything here can be
called from the lesson completion flow, the streak tracker or a template.
"""
import math
from dataclasses import dataclass, field, asdict
from typing import List, Optional

XP_PER_LEVEL = 500

LEVEL_TITLES = {
    1: 'Prompt Curious',
    2: 'Prompt Apprentice',
    3: 'Token Tinkerer',
    4: 'Context Crafter',
    5: 'Embedding Explorer',
    6: 'RAG Rookie',
    7: 'Vector Voyager',
    8: 'Pipeline Pioneer',
    9: 'Agent Architect',
    10: 'LLM Engineer',
}
MAX_TITLE = 'LLM Master'

# Completing in under this share of the estimated time earns the speed bonus
SPEED_BONUS_RATIO = 0.8
SPEED_BONUS_XP = 25

# (minimum score, bonus), highest first
QUIZ_BONUSES = [
    (100, 50),
    (90, 25),
    (70, 10),
]

# (minimum streak, multiplier), highest first
STREAK_MULTIPLIERS = [
    (30, 1.5),
    (7, 1.2),
]

FIRST_COMPLETION_BONUS_XP = 50

# (minimum streak, check-in bonus), highest first
STREAK_BONUSES = [
    (30, 100),
    (14, 50),
    (7, 25),
    (3, 10),
]
BASE_STREAK_BONUS = 5


def calculate_level(total_xp):
    """Level for a total: one level per XP_PER_LEVEL, starting at 1."""
    if total_xp < 0:
        raise ValueError(f"total_xp must be non-negative, got {total_xp}")
    return total_xp // XP_PER_LEVEL + 1


def level_title(level):
    if level < 1:
        raise ValueError(f"level starts at 1, got {level}")
    if level > max(LEVEL_TITLES):
        return MAX_TITLE
    return LEVEL_TITLES[level]


def xp_for_next_level(level):
    """Total XP at which ``level + 1`` starts."""
    return level * XP_PER_LEVEL


def xp_in_current_level(total_xp):
    return total_xp % XP_PER_LEVEL


def level_progress_percent(total_xp):
    return round(xp_in_current_level(total_xp) / XP_PER_LEVEL * 100)


def streak_bonus(streak):
    """Check-in bonus XP for a streak of ``streak`` consecutive days."""
    for minimum, bonus in STREAK_BONUSES:
        if streak >= minimum:
            return bonus
    return BASE_STREAK_BONUS


def streak_multiplier(streak):
    for minimum, multiplier in STREAK_MULTIPLIERS:
        if streak >= minimum:
            return multiplier
    return 1.0


def speed_bonus(time_spent_seconds, estimated_minutes):
    if not estimated_minutes or estimated_minutes <= 0:
        return 0
    ratio = time_spent_seconds / (estimated_minutes * 60)
    return SPEED_BONUS_XP if ratio < SPEED_BONUS_RATIO else 0


def quiz_bonus(quiz_score):
    if quiz_score is None:
        return 0
    for minimum, bonus in QUIZ_BONUSES:
        if quiz_score >= minimum:
            return bonus
    return 0


@dataclass
class LessonXpBreakdown:
    base: int
    speed_bonus: int
    quiz_bonus: int
    total: int

    def to_dict(self):
        return asdict(self)


@dataclass
class MultiplierResult:
    subtotal: int
    multiplier: float
    bonus_xp: int
    total: int
    applied_bonuses: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def lesson_completion_xp(base_xp: int, time_spent_seconds: int, estimated_minutes: int,
                         quiz_score: Optional[float] = None) -> LessonXpBreakdown:
    """
    XP earned for one lesson before daily multipliers.

    The breakdown is returned alongside the total so callers can show and
    audit where each point came from.
    """
    speed = speed_bonus(time_spent_seconds, estimated_minutes)
    quiz = quiz_bonus(quiz_score)
    return LessonXpBreakdown(
        base=base_xp,
        speed_bonus=speed,
        quiz_bonus=quiz,
        total=base_xp + speed + quiz,
    )


def apply_daily_multipliers(subtotal: int, current_streak: int,
                            is_first_completion_today: bool) -> MultiplierResult:
    """
    Scale ``subtotal`` by the streak tier, then add the flat first-of-day bonus.

    The multiplier never touches the first-completion bonus.
    """
    applied = []
    multiplier = streak_multiplier(current_streak)
    if multiplier > 1.0:
        applied.append(f"{_tier_floor(current_streak)}-day streak bonus ({multiplier}x)")

    total = math.floor(subtotal * multiplier)

    if is_first_completion_today:
        total += FIRST_COMPLETION_BONUS_XP
        applied.append(f"First lesson today (+{FIRST_COMPLETION_BONUS_XP} XP)")

    return MultiplierResult(
        subtotal=subtotal,
        multiplier=multiplier,
        bonus_xp=total - subtotal,
        total=total,
        applied_bonuses=applied,
    )


def _tier_floor(streak):
    for minimum, _ in STREAK_MULTIPLIERS:
        if streak >= minimum:
            return minimum
    return 0
