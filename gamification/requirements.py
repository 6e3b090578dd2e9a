"""
Badge requirements as tagged predicates.

Each catalog badge carries exactly one requirement. The catalog stores it as
``requirement_type`` / ``requirement_value`` / ``requirement_tag`` columns and
:func:`from_columns` turns those into one of the predicate classes below.
"""
from dataclasses import dataclass

LESSONS_COMPLETED = 'lessons_completed'
STREAK = 'streak'
LEVEL = 'level'
TOTAL_XP = 'total_xp'
SPECIAL = 'special'

REQUIREMENT_TYPE_CHOICES = [
    (LESSONS_COMPLETED, 'Lessons completed'),
    (STREAK, 'Streak'),
    (LEVEL, 'Level'),
    (TOTAL_XP, 'Total XP'),
    (SPECIAL, 'Special'),
]

# Feed spellings accepted for each stored type
TYPE_ALIASES = {
    'lessons_completed': LESSONS_COMPLETED,
    'lessonsCompleted': LESSONS_COMPLETED,
    'streak': STREAK,
    'level': LEVEL,
    'total_xp': TOTAL_XP,
    'totalXp': TOTAL_XP,
}


@dataclass(frozen=True)
class LessonsCompleted:
    count: int


@dataclass(frozen=True)
class StreakAtLeast:
    days: int


@dataclass(frozen=True)
class LevelAtLeast:
    level: int


@dataclass(frozen=True)
class TotalXpAtLeast:
    xp: int


@dataclass(frozen=True)
class Special:
    tag: str
    value: int = 0


def from_columns(requirement_type, value, tag=''):
    if requirement_type == LESSONS_COMPLETED:
        return LessonsCompleted(value)
    if requirement_type == STREAK:
        return StreakAtLeast(value)
    if requirement_type == LEVEL:
        return LevelAtLeast(value)
    if requirement_type == TOTAL_XP:
        return TotalXpAtLeast(value)
    if requirement_type == SPECIAL:
        return Special(tag, value)
    raise ValueError(f'Unknown requirement type: {requirement_type!r}')
