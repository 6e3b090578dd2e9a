"""
Global and weekly leaderboards.

GLOBAL ranks everyone by total XP. WEEKLY ranks by XP earned from lesson
completions since the most recent Sunday 00:00, leaving out users who earned
nothing this week. Equal XP is ordered by user id so pages never overlap, and
ranks are positions: no shared ranks.

Every entry carries its movement against yesterday's snapshot. The page, the
snapshot lookup and the off-page rank are separate queries; the result is
allowed to be slightly stale rather than one atomic view.

The weekly board resets at the Sunday boundary. A snapshot taken on a Sunday
records the week that just closed, so Monday pages compare the new week
against last week's final standings instead of showing everyone as new.
Sunday pages compare against Saturday's snapshot of that same closed week.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import timedelta
from typing import List, Optional

from django.conf import settings
from django.db.models import Q, Sum
from django.utils import timezone

from .dates import local_today, week_start
from .models import LeaderboardSnapshot, LessonCompletion, UserProgress

logger = logging.getLogger(__name__)

GLOBAL = LeaderboardSnapshot.GLOBAL
WEEKLY = LeaderboardSnapshot.WEEKLY
LEADERBOARD_TYPES = (GLOBAL, WEEKLY)

DEFAULT_LIMIT = 50


@dataclass
class RankChange:
    direction: str
    amount: int = 0


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    display_name: str
    total_xp: int
    level: int
    is_current_user: bool = False
    rank_change: Optional[RankChange] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class LeaderboardPage:
    entries: List[LeaderboardEntry] = field(default_factory=list)
    current_user_rank: Optional[int] = None
    current_user_entry: Optional[LeaderboardEntry] = None
    total: int = 0
    offset: int = 0

    def to_dict(self):
        return asdict(self)


def rank_change(previous_rank, current_rank):
    """Movement since the previous snapshot; positive means climbed."""
    if previous_rank is None:
        return RankChange('new')
    delta = previous_rank - current_rank
    if delta > 0:
        return RankChange('up', delta)
    if delta < 0:
        return RankChange('down', -delta)
    return RankChange('same')


# ==================== RANKING QUERIES ====================

def _global_ranking():
    return UserProgress.objects.order_by('-total_xp', 'user_id').values_list('user_id', 'total_xp')


def _weekly_totals(since, until=None):
    completions = LessonCompletion.objects.filter(completed_at__gte=since)
    if until is not None:
        completions = completions.filter(completed_at__lt=until)
    return completions.values('user_id').annotate(weekly_xp=Sum('xp_earned'))


def _weekly_ranking(since, until=None):
    return (
        _weekly_totals(since, until)
        .filter(weekly_xp__gt=0)
        .order_by('-weekly_xp', 'user_id')
        .values_list('user_id', 'weekly_xp')
    )


def _ranking(kind, now):
    if kind == GLOBAL:
        return _global_ranking()
    return _weekly_ranking(week_start(now))


def full_ranking(kind, now=None):
    """The complete ordered ``[(user_id, xp), ...]`` list for ``kind``."""
    _check_type(kind)
    return list(_ranking(kind, now or timezone.now()))


def _check_type(kind):
    if kind not in LEADERBOARD_TYPES:
        raise ValueError(f"Unknown leaderboard type: {kind!r}")


# ==================== LEADERBOARD ====================

def get_leaderboard(user_id, kind=GLOBAL, limit=DEFAULT_LIMIT, offset=0, now=None):
    """
    One page of the ``kind`` leaderboard as seen by ``user_id``.

    ``current_user_entry`` is only filled when the user is ranked but not on
    the returned page; ``current_user_rank`` is None for unranked users.
    """
    _check_type(kind)
    max_limit = getattr(settings, 'GAMIFICATION_LEADERBOARD_MAX_LIMIT', 100)
    if not 1 <= limit <= max_limit:
        raise ValueError(f"limit must be between 1 and {max_limit}")
    if offset < 0:
        raise ValueError("offset must be at least 0")

    now = now or timezone.now()
    yesterday = local_today(now) - timedelta(days=1)

    rows = list(_ranking(kind, now)[offset:offset + limit])
    entries = _build_entries(rows, offset, user_id, kind, yesterday)

    on_page = next((e for e in entries if e.is_current_user), None)
    if on_page is not None:
        current_rank, current_entry = on_page.rank, None
    else:
        current_rank, xp = _locate_user(user_id, kind, now)
        current_entry = None
        if current_rank is not None:
            current_entry = _build_entries([(user_id, xp)], current_rank - 1, user_id, kind, yesterday)[0]

    return LeaderboardPage(
        entries=entries,
        current_user_rank=current_rank,
        current_user_entry=current_entry,
        total=len(entries),
        offset=offset,
    )


def _locate_user(user_id, kind, now):
    """``(rank, xp)`` for a user not on the page, or ``(None, None)``."""
    if kind == GLOBAL:
        total_xp = UserProgress.objects.filter(user_id=user_id).values_list('total_xp', flat=True).first()
        if total_xp is None:
            return None, None
        ahead = UserProgress.objects.filter(total_xp__gt=total_xp).count()
        return ahead + 1, total_xp

    since = week_start(now)
    weekly_xp = (
        LessonCompletion.objects.filter(user_id=user_id, completed_at__gte=since)
        .aggregate(total=Sum('xp_earned'))['total']
    )
    if not weekly_xp:
        return None, None
    # Position in the weekly order: higher sums first, ties by user id
    ahead = _weekly_totals(since).filter(
        Q(weekly_xp__gt=weekly_xp) | Q(weekly_xp=weekly_xp, user_id__lt=user_id)
    ).count()
    return ahead + 1, weekly_xp


def _build_entries(rows, offset, user_id, kind, snapshot_date):
    user_ids = [uid for uid, _ in rows]
    profiles = {
        p.user_id: p
        for p in UserProgress.objects.select_related('user').filter(user_id__in=user_ids)
    }
    previous_ranks = dict(
        LeaderboardSnapshot.objects.filter(date=snapshot_date, type=kind, user_id__in=user_ids)
        .values_list('user_id', 'rank')
    )

    entries = []
    for index, (uid, xp) in enumerate(rows):
        rank = offset + index + 1
        profile = profiles.get(uid)
        entries.append(LeaderboardEntry(
            rank=rank,
            user_id=uid,
            display_name=_display_name(profile.user) if profile else '',
            total_xp=xp,
            level=profile.level if profile else 1,
            is_current_user=uid == user_id,
            rank_change=rank_change(previous_ranks.get(uid), rank),
        ))
    return entries


def _display_name(user):
    return user.get_full_name() or user.get_username()


# ==================== SNAPSHOTS ====================

def _snapshot_ranking(kind, now):
    start = week_start(now)
    if kind == WEEKLY and start.date() == local_today(now):
        # Sunday snapshot: the Sunday-to-Saturday week that just closed
        return _weekly_ranking(start - timedelta(days=7), until=start)
    return _ranking(kind, now)


def create_daily_snapshots(now=None):
    """
    Freeze today's complete GLOBAL and WEEKLY rankings.

    On a Sunday the WEEKLY rows hold the previous Sunday-to-Saturday week.

    Rows that already exist for (user, date, type) are left alone, so running
    twice on the same day writes nothing new. Returns the number of ranked
    users per type.
    """
    now = now or timezone.now()
    today = local_today(now)
    counts = {}

    for kind in LEADERBOARD_TYPES:
        snapshots = [
            LeaderboardSnapshot(user_id=uid, date=today, type=kind, rank=rank, xp=xp)
            for rank, (uid, xp) in enumerate(_snapshot_ranking(kind, now).iterator(), start=1)
        ]
        LeaderboardSnapshot.objects.bulk_create(snapshots, batch_size=500, ignore_conflicts=True)
        counts[kind] = len(snapshots)
        logger.info("Recorded %s %s leaderboard snapshot rows for %s", len(snapshots), kind, today)

    return counts
