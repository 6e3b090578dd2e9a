"""
Badge evaluation, catalog loading and listing.

A badge is earned when its single requirement predicate holds against the
user's progress. Awards are a set: the (user, badge) unique constraint makes a
second award of the same badge a no-op.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from . import requirements
from .dates import day_bounds, local_today
from .models import Badge, LessonCompletion, UserBadge
from .progress import add_xp, get_progress
from .requirements import LessonsCompleted, LevelAtLeast, Special, StreakAtLeast, TotalXpAtLeast

logger = logging.getLogger(__name__)


# ==================== SPECIAL REQUIREMENTS ====================

SPECIAL_CHECKS = {}

# Feed spellings of special tags
SPECIAL_ALIASES = {
    'lessonsInDay': 'lessons_in_day',
}


def special_check(tag):
    """Register the check for ``Special(tag, value)`` requirements."""
    def decorator(func):
        SPECIAL_CHECKS[tag] = func
        return func
    return decorator


@special_check('lessons_in_day')
def lessons_in_day(progress, value, now):
    start, end = day_bounds(local_today(now))
    completed_today = LessonCompletion.objects.filter(
        user_id=progress.user_id,
        completed_at__gte=start,
        completed_at__lt=end,
    ).count()
    return completed_today >= value


# ==================== EVALUATION ====================

def is_satisfied(requirement, progress, now=None):
    if isinstance(requirement, LessonsCompleted):
        return progress.lessons_completed >= requirement.count
    if isinstance(requirement, StreakAtLeast):
        return progress.current_streak >= requirement.days
    if isinstance(requirement, LevelAtLeast):
        return progress.level >= requirement.level
    if isinstance(requirement, TotalXpAtLeast):
        return progress.total_xp >= requirement.xp
    if isinstance(requirement, Special):
        check = SPECIAL_CHECKS.get(requirement.tag)
        if check is None:
            return False
        return check(progress, requirement.value, now or timezone.now())
    raise TypeError(f"Unsupported requirement: {requirement!r}")


def check_and_award_badges(user_id, now=None):
    """
    Award every catalog badge the user now qualifies for.

    Returns the badges awarded by this call. Badge XP rewards go through
    add_xp, so they can raise the level and unlock further badges; scanning
    repeats until a pass awards nothing, which keeps an immediate re-run a
    no-op.
    """
    now = now or timezone.now()
    catalog = list(Badge.objects.all())
    earned_ids = set(UserBadge.objects.filter(user_id=user_id).values_list('badge_id', flat=True))
    awarded = []

    while True:
        progress = get_progress(user_id)
        newly_awarded = []
        for badge in catalog:
            if badge.id in earned_ids:
                continue
            if not is_satisfied(badge.requirement, progress, now):
                continue
            if _award(user_id, badge, now):
                newly_awarded.append(badge)
            earned_ids.add(badge.id)

        if not newly_awarded:
            break
        awarded.extend(newly_awarded)

    return awarded


def _award(user_id, badge, now):
    """Create the award row and apply its XP reward as one committed step."""
    try:
        with transaction.atomic():
            UserBadge.objects.create(user_id=user_id, badge=badge, earned_at=now)
            if badge.xp_reward:
                add_xp(user_id, badge.xp_reward, now=now)
    except IntegrityError:
        logger.info("Badge %s was already awarded to user %s", badge.slug, user_id)
        return False

    logger.info("Awarded badge %s to user %s (+%s XP)", badge.slug, user_id, badge.xp_reward)
    return True


def list_badges(user_id):
    """Earned badges plus the visible ones still locked."""
    earned = list(
        UserBadge.objects.filter(user_id=user_id)
        .select_related('badge')
        .order_by('earned_at')
    )
    earned_ids = {ub.badge_id for ub in earned}
    locked = Badge.objects.filter(is_secret=False).exclude(id__in=earned_ids).order_by('category', 'slug')

    return {
        'earned': [dict(_badge_dict(ub.badge), earned_at=ub.earned_at) for ub in earned],
        'locked': [_badge_dict(b) for b in locked],
    }


def _badge_dict(badge):
    return {
        'slug': badge.slug,
        'name': badge.name,
        'description': badge.description,
        'icon': badge.icon,
        'category': badge.category,
    }


# ==================== CATALOG LOADING ====================

@dataclass
class BadgeLoadResult:
    created: int = 0
    updated: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def parse_requirement(raw):
    """
    Turn a feed requirement into ``(type, value, tag)`` columns.

    Accepts ``{"type": ..., "value": ...}`` and the single-key form
    ``{"lessonsCompleted": 1}``.
    """
    if not isinstance(raw, dict):
        raise ValidationError("requirement must be an object")

    if 'type' in raw:
        kind, value = raw.get('type'), raw.get('value')
        tag = raw.get('tag', '')
    elif len(raw) == 1:
        (kind, value), = raw.items()
        tag = ''
    else:
        raise ValidationError("requirement must name exactly one condition")

    if not isinstance(kind, str) or not kind:
        raise ValidationError("requirement type must be a non-empty string")
    if not _is_int(value) or value < 0:
        raise ValidationError(f"requirement value for {kind!r} must be a non-negative integer")

    if kind in requirements.TYPE_ALIASES:
        return requirements.TYPE_ALIASES[kind], value, ''
    if kind == requirements.SPECIAL:
        if not isinstance(tag, str) or not tag:
            raise ValidationError("special requirements need a tag")
        return requirements.SPECIAL, value, SPECIAL_ALIASES.get(tag, tag)
    return requirements.SPECIAL, value, SPECIAL_ALIASES.get(kind, kind)


def parse_badge_definition(data):
    """Validate one feed entry and return Badge field values."""
    if not isinstance(data, dict):
        raise ValidationError("badge definition must be an object")

    for key in ('slug', 'name', 'description', 'icon', 'category'):
        if not isinstance(data.get(key), str):
            raise ValidationError(f"{key} must be a string")

    xp_reward = data.get('xpReward', 0)
    if not _is_int(xp_reward) or xp_reward < 0:
        raise ValidationError("xpReward must be a non-negative integer")

    is_secret = data.get('isSecret', False)
    if not isinstance(is_secret, bool):
        raise ValidationError("isSecret must be a boolean")

    requirement_type, requirement_value, requirement_tag = parse_requirement(data.get('requirement'))

    fields = {
        'name': data['name'],
        'description': data['description'],
        'icon': data['icon'],
        'category': data['category'],
        'requirement_type': requirement_type,
        'requirement_value': requirement_value,
        'requirement_tag': requirement_tag,
        'xp_reward': xp_reward,
        'is_secret': is_secret,
    }
    # Field-level checks: slug format, category choices, lengths
    Badge(slug=data['slug'], **fields).full_clean(validate_unique=False)
    return data['slug'], fields


def load_badges(items):
    """Upsert badge definitions by slug; malformed entries are skipped."""
    result = BadgeLoadResult()
    for item in items:
        slug = item.get('slug', 'unknown') if isinstance(item, dict) else 'unknown'
        try:
            slug, fields = parse_badge_definition(item)
        except ValidationError as exc:
            error = '; '.join(exc.messages)
            result.errors.append({'slug': slug, 'error': error})
            logger.warning("Skipping badge %s: %s", slug, error)
            continue

        _, created = Badge.objects.update_or_create(slug=slug, defaults=fields)
        if created:
            result.created += 1
        else:
            result.updated += 1
        logger.debug("%s badge %s", 'Created' if created else 'Updated', slug)

    logger.info(
        "Badge catalog loaded: %s created, %s updated, %s errors",
        result.created, result.updated, len(result.errors),
    )
    return result


def load_badges_from_file(path):
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Could not read badge catalog {path}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get('badges'), list):
        raise ValidationError('Invalid catalog: "badges" array not found')

    logger.info("Loading %s badges from %s", len(data['badges']), path)
    return load_badges(data['badges'])
