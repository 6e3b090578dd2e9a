from datetime import date, datetime, timezone as dt_timezone

from django.contrib.auth.models import User
from django.test import SimpleTestCase, TestCase, override_settings

from gamification.leaderboard import (
    GLOBAL, WEEKLY, create_daily_snapshots, full_ranking, get_leaderboard, rank_change,
)
from gamification.models import LeaderboardSnapshot, LessonCompletion, UserProgress

# Wednesday; the week started on Sunday 2026-03-01
NOW = datetime(2026, 3, 4, 12, 0, tzinfo=dt_timezone.utc)
YESTERDAY = date(2026, 3, 3)


def make_user(username, total_xp=0, **extra):
    user = User.objects.create_user(username=username, password='pw', **extra)
    UserProgress.objects.filter(user=user).update(total_xp=total_xp)
    return user


def complete(user, lesson_id, xp, when):
    return LessonCompletion.objects.create(user=user, lesson_id=lesson_id, xp_earned=xp, completed_at=when)


class RankChangeTests(SimpleTestCase):

    def test_directions(self):
        self.assertEqual(rank_change(5, 2).direction, 'up')
        self.assertEqual(rank_change(5, 2).amount, 3)
        self.assertEqual(rank_change(2, 5).direction, 'down')
        self.assertEqual(rank_change(2, 5).amount, 3)
        self.assertEqual(rank_change(4, 4).direction, 'same')
        self.assertEqual(rank_change(None, 1).direction, 'new')


@override_settings(TIME_ZONE='UTC')
class GlobalLeaderboardTests(TestCase):

    def setUp(self):
        self.users = [
            make_user('ana', 500, first_name='Ana', last_name='Silva'),
            make_user('ben', 400),
            make_user('cleo', 300),
            make_user('dev', 200),
            make_user('eli', 100),
        ]

    def test_user_on_page(self):
        page = get_leaderboard(self.users[0].id, GLOBAL, limit=3, now=NOW)

        self.assertEqual([e.rank for e in page.entries], [1, 2, 3])
        self.assertEqual([e.total_xp for e in page.entries], [500, 400, 300])
        self.assertEqual(page.entries[0].display_name, 'Ana Silva')
        self.assertEqual(page.entries[1].display_name, 'ben')
        self.assertTrue(page.entries[0].is_current_user)
        self.assertEqual(page.current_user_rank, 1)
        self.assertIsNone(page.current_user_entry)
        self.assertEqual(page.total, 3)

    def test_user_below_page_gets_own_entry(self):
        page = get_leaderboard(self.users[4].id, GLOBAL, limit=3, now=NOW)

        self.assertFalse(any(e.is_current_user for e in page.entries))
        self.assertEqual(page.current_user_rank, 5)
        entry = page.current_user_entry
        self.assertEqual((entry.rank, entry.user_id, entry.total_xp), (5, self.users[4].id, 100))
        self.assertTrue(entry.is_current_user)

    def test_offset_continues_ranks(self):
        page = get_leaderboard(self.users[0].id, GLOBAL, limit=2, offset=2, now=NOW)

        self.assertEqual([e.rank for e in page.entries], [3, 4])
        self.assertEqual([e.user_id for e in page.entries], [self.users[2].id, self.users[3].id])
        self.assertEqual(page.offset, 2)
        self.assertEqual(page.current_user_rank, 1)
        self.assertEqual(page.current_user_entry.rank, 1)

    def test_ties_get_distinct_ranks(self):
        twin = make_user('cleo2', 300)
        page = get_leaderboard(self.users[0].id, GLOBAL, limit=10, now=NOW)

        ranks = [e.rank for e in page.entries]
        self.assertEqual(ranks, list(range(1, 7)))
        tied = [e.user_id for e in page.entries if e.total_xp == 300]
        self.assertEqual(tied, [self.users[2].id, twin.id])

    def test_ranks_are_non_decreasing_in_xp(self):
        page = get_leaderboard(self.users[0].id, GLOBAL, limit=10, now=NOW)
        xps = [e.total_xp for e in page.entries]
        self.assertEqual(xps, sorted(xps, reverse=True))

    def test_rank_change_against_yesterday(self):
        LeaderboardSnapshot.objects.create(user=self.users[0], date=YESTERDAY, type=GLOBAL, rank=3, xp=300)
        LeaderboardSnapshot.objects.create(user=self.users[1], date=YESTERDAY, type=GLOBAL, rank=1, xp=350)
        LeaderboardSnapshot.objects.create(user=self.users[2], date=YESTERDAY, type=GLOBAL, rank=3, xp=250)
        # Older snapshots do not count as "yesterday"
        LeaderboardSnapshot.objects.create(user=self.users[3], date=date(2026, 3, 1), type=GLOBAL, rank=4, xp=200)
        # Nor do snapshots of the other leaderboard
        LeaderboardSnapshot.objects.create(user=self.users[4], date=YESTERDAY, type=WEEKLY, rank=1, xp=100)

        page = get_leaderboard(self.users[0].id, GLOBAL, limit=5, now=NOW)
        changes = [(e.rank_change.direction, e.rank_change.amount) for e in page.entries]

        self.assertEqual(changes, [('up', 2), ('down', 1), ('same', 0), ('new', 0), ('new', 0)])

    def test_off_page_entry_carries_rank_change(self):
        LeaderboardSnapshot.objects.create(user=self.users[4], date=YESTERDAY, type=GLOBAL, rank=2, xp=450)

        page = get_leaderboard(self.users[4].id, GLOBAL, limit=3, now=NOW)

        change = page.current_user_entry.rank_change
        self.assertEqual((change.direction, change.amount), ('down', 3))

    def test_off_page_entry_without_snapshot_is_new(self):
        page = get_leaderboard(self.users[3].id, GLOBAL, limit=2, now=NOW)
        self.assertEqual(page.current_user_entry.rank_change.direction, 'new')

    def test_user_without_progress_is_unranked(self):
        outsider = make_user('zed')
        UserProgress.objects.filter(user=outsider).delete()

        page = get_leaderboard(outsider.id, GLOBAL, limit=2, now=NOW)

        self.assertIsNone(page.current_user_rank)
        self.assertIsNone(page.current_user_entry)
        self.assertEqual(len(page.entries), 2)

    def test_invalid_arguments(self):
        uid = self.users[0].id
        with self.assertRaises(ValueError):
            get_leaderboard(uid, 'monthly', now=NOW)
        with self.assertRaises(ValueError):
            get_leaderboard(uid, GLOBAL, limit=0, now=NOW)
        with self.assertRaises(ValueError):
            get_leaderboard(uid, GLOBAL, limit=101, now=NOW)
        with self.assertRaises(ValueError):
            get_leaderboard(uid, GLOBAL, offset=-1, now=NOW)

    def test_offset_past_the_end(self):
        page = get_leaderboard(self.users[2].id, GLOBAL, limit=10, offset=50, now=NOW)
        self.assertEqual(page.entries, [])
        self.assertEqual(page.current_user_rank, 3)


@override_settings(TIME_ZONE='UTC')
class WeeklyLeaderboardTests(TestCase):

    def setUp(self):
        self.ana = make_user('ana', 5000)
        self.ben = make_user('ben', 100)
        self.cleo = make_user('cleo', 900)

    def test_only_this_weeks_lessons_count(self):
        complete(self.ana, 'saturday', 1000, datetime(2026, 2, 28, 23, 59, tzinfo=dt_timezone.utc))
        complete(self.ana, 'sunday', 50, datetime(2026, 3, 1, 0, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'monday', 150, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'tuesday', 100, datetime(2026, 3, 3, 10, 0, tzinfo=dt_timezone.utc))

        page = get_leaderboard(self.ana.id, WEEKLY, limit=10, now=NOW)

        self.assertEqual(
            [(e.user_id, e.total_xp) for e in page.entries],
            [(self.ben.id, 250), (self.ana.id, 50)],
        )
        self.assertEqual(page.current_user_rank, 2)
        self.assertEqual(page.entries[1].level, UserProgress.objects.get(user=self.ana).level)

    def test_users_without_weekly_xp_are_unranked(self):
        complete(self.ben, 'monday', 150, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))

        page = get_leaderboard(self.cleo.id, WEEKLY, limit=10, now=NOW)

        self.assertEqual([e.user_id for e in page.entries], [self.ben.id])
        self.assertIsNone(page.current_user_rank)
        self.assertIsNone(page.current_user_entry)

    def test_weekly_user_off_page(self):
        complete(self.ana, 'a', 300, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'b', 200, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'c', 100, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))

        page = get_leaderboard(self.cleo.id, WEEKLY, limit=2, now=NOW)

        self.assertEqual(page.current_user_rank, 3)
        self.assertEqual(page.current_user_entry.rank, 3)
        self.assertEqual(page.current_user_entry.total_xp, 100)

    def test_weekly_tie_off_page_uses_position(self):
        complete(self.ana, 'a', 300, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'b', 200, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'c', 200, datetime(2026, 3, 3, 10, 0, tzinfo=dt_timezone.utc))

        ben_page = get_leaderboard(self.ben.id, WEEKLY, limit=1, now=NOW)
        cleo_page = get_leaderboard(self.cleo.id, WEEKLY, limit=1, now=NOW)

        self.assertEqual(ben_page.current_user_rank, 2)
        self.assertEqual(cleo_page.current_user_rank, 3)
        self.assertEqual(cleo_page.current_user_entry.total_xp, 200)

    def test_weekly_off_page_sums_every_completion(self):
        complete(self.ana, 'a', 300, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'c1', 150, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'c2', 100, datetime(2026, 3, 3, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'b', 200, datetime(2026, 3, 3, 10, 0, tzinfo=dt_timezone.utc))

        page = get_leaderboard(self.ben.id, WEEKLY, limit=2, now=NOW)

        self.assertEqual(page.current_user_rank, 3)
        self.assertEqual(page.current_user_entry.total_xp, 200)

    def test_weekly_rank_change_against_yesterday(self):
        complete(self.ana, 'a', 300, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.ben, 'b', 200, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'c', 100, datetime(2026, 3, 3, 10, 0, tzinfo=dt_timezone.utc))
        LeaderboardSnapshot.objects.create(user=self.ana, date=YESTERDAY, type=WEEKLY, rank=2, xp=150)
        LeaderboardSnapshot.objects.create(user=self.ben, date=YESTERDAY, type=WEEKLY, rank=1, xp=200)
        # A global snapshot says nothing about weekly movement
        LeaderboardSnapshot.objects.create(user=self.cleo, date=YESTERDAY, type=GLOBAL, rank=1, xp=900)

        page = get_leaderboard(self.ana.id, WEEKLY, limit=3, now=NOW)
        changes = [(e.rank_change.direction, e.rank_change.amount) for e in page.entries]

        self.assertEqual(changes, [('up', 1), ('down', 1), ('new', 0)])

    def test_full_ranking(self):
        complete(self.cleo, 'c', 100, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))
        self.assertEqual(full_ranking(WEEKLY, now=NOW), [(self.cleo.id, 100)])
        self.assertEqual(
            full_ranking(GLOBAL, now=NOW),
            [(self.ana.id, 5000), (self.cleo.id, 900), (self.ben.id, 100)],
        )


@override_settings(TIME_ZONE='UTC')
class SnapshotTests(TestCase):

    def setUp(self):
        self.ana = make_user('ana', 300)
        self.ben = make_user('ben', 500)
        self.cleo = make_user('cleo', 0)
        complete(self.ana, 'a', 120, datetime(2026, 3, 2, 10, 0, tzinfo=dt_timezone.utc))

    def test_snapshot_records_every_ranked_user(self):
        counts = create_daily_snapshots(now=NOW)

        self.assertEqual(counts, {GLOBAL: 3, WEEKLY: 1})
        global_rows = LeaderboardSnapshot.objects.filter(date=NOW.date(), type=GLOBAL).order_by('rank')
        self.assertEqual(
            [(s.user_id, s.rank, s.xp) for s in global_rows],
            [(self.ben.id, 1, 500), (self.ana.id, 2, 300), (self.cleo.id, 3, 0)],
        )
        weekly = LeaderboardSnapshot.objects.get(date=NOW.date(), type=WEEKLY)
        self.assertEqual((weekly.user_id, weekly.rank, weekly.xp), (self.ana.id, 1, 120))

    def test_rerun_same_day_changes_nothing(self):
        create_daily_snapshots(now=NOW)
        UserProgress.objects.filter(user=self.ana).update(total_xp=900)

        create_daily_snapshots(now=NOW)

        self.assertEqual(LeaderboardSnapshot.objects.count(), 4)
        row = LeaderboardSnapshot.objects.get(user=self.ana, date=NOW.date(), type=GLOBAL)
        self.assertEqual((row.rank, row.xp), (2, 300))

    def test_sunday_snapshot_keeps_the_closed_week(self):
        sunday = datetime(2026, 3, 8, 0, 0, tzinfo=dt_timezone.utc)
        complete(self.ben, 'b', 200, datetime(2026, 3, 7, 23, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'old', 999, datetime(2026, 2, 28, 12, 0, tzinfo=dt_timezone.utc))

        counts = create_daily_snapshots(now=sunday)

        self.assertEqual(counts[WEEKLY], 2)
        weekly = LeaderboardSnapshot.objects.filter(date=sunday.date(), type=WEEKLY).order_by('rank')
        self.assertEqual(
            [(s.user_id, s.rank, s.xp) for s in weekly],
            [(self.ben.id, 1, 200), (self.ana.id, 2, 120)],
        )

        # Monday's weekly page compares the new week with last week's result
        complete(self.ana, 'monday', 100, datetime(2026, 3, 9, 9, 0, tzinfo=dt_timezone.utc))
        complete(self.cleo, 'sunday', 50, datetime(2026, 3, 8, 10, 0, tzinfo=dt_timezone.utc))
        monday = datetime(2026, 3, 9, 12, 0, tzinfo=dt_timezone.utc)

        page = get_leaderboard(self.ana.id, WEEKLY, limit=5, now=monday)
        changes = [(e.user_id, e.rank_change.direction, e.rank_change.amount) for e in page.entries]

        self.assertEqual(changes, [(self.ana.id, 'up', 1), (self.cleo.id, 'new', 0)])

    def test_snapshot_feeds_next_days_rank_change(self):
        create_daily_snapshots(now=NOW)
        UserProgress.objects.filter(user=self.ana).update(total_xp=900)
        tomorrow = datetime(2026, 3, 5, 12, 0, tzinfo=dt_timezone.utc)

        page = get_leaderboard(self.ana.id, GLOBAL, limit=3, now=tomorrow)

        first = page.entries[0]
        self.assertEqual(first.user_id, self.ana.id)
        self.assertEqual((first.rank_change.direction, first.rank_change.amount), ('up', 1))
