from django.db import models
from django.contrib.auth.models import User
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

from . import requirements
from .xp import level_title


class UserProgress(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='progress')
    total_xp = models.PositiveIntegerField(default=0)
    # level and level_title are caches of xp.calculate_level(total_xp)
    level = models.PositiveIntegerField(default=1)
    level_title = models.CharField(max_length=50, default=level_title(1))
    current_streak = models.PositiveIntegerField(default=0)
    longest_streak = models.PositiveIntegerField(default=0)
    lessons_completed = models.PositiveIntegerField(default=0)
    last_active_at = models.DateTimeField(null=True, blank=True)
    # Bumped on every total_xp change; guards the level recompute
    version = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = 'user progress'
        indexes = [
            models.Index(fields=['-total_xp'], name='progress_total_xp_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.total_xp} XP (level {self.level})"


# Every account starts with an all-zero progress row
@receiver(post_save, sender=User)
def create_user_progress(sender, instance, created, **kwargs):
    if created:
        UserProgress.objects.create(user=instance)


class StreakLog(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='streak_logs')
    date = models.DateField()
    checked_in = models.BooleanField(default=True)
    bonus_xp = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ['user', 'date']
        ordering = ['-date']

    def __str__(self):
        return f"{self.user.username} - {self.date}"


class Badge(models.Model):
    CATEGORY_CHOICES = [
        ('progress', 'Progress'),
        ('streak', 'Streak'),
        ('completion', 'Completion'),
        ('mastery', 'Mastery'),
        ('special', 'Special'),
    ]

    slug = models.SlugField(max_length=100, unique=True)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=32, default='🏆')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='progress')
    requirement_type = models.CharField(max_length=20, choices=requirements.REQUIREMENT_TYPE_CHOICES)
    requirement_value = models.PositiveIntegerField(default=1)
    requirement_tag = models.CharField(max_length=50, blank=True)
    xp_reward = models.PositiveIntegerField(default=0)
    is_secret = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['category', 'slug']

    def __str__(self):
        return self.name

    @property
    def requirement(self):
        return requirements.from_columns(self.requirement_type, self.requirement_value, self.requirement_tag)


class UserBadge(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='earned_badges')
    badge = models.ForeignKey(Badge, on_delete=models.CASCADE, related_name='awards')
    earned_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ['user', 'badge']

    def __str__(self):
        return f"{self.user.username} - {self.badge.slug}"


class LessonCompletion(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='lesson_completions')
    lesson_id = models.CharField(max_length=100)
    xp_earned = models.PositiveIntegerField(default=0)
    time_spent_seconds = models.PositiveIntegerField(default=0)
    completed_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        unique_together = ['user', 'lesson_id']

    def __str__(self):
        return f"{self.user.username} - {self.lesson_id} (+{self.xp_earned} XP)"


class LeaderboardSnapshot(models.Model):
    GLOBAL = 'global'
    WEEKLY = 'weekly'
    TYPE_CHOICES = [
        (GLOBAL, 'Global'),
        (WEEKLY, 'Weekly'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='leaderboard_snapshots')
    date = models.DateField()
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    rank = models.PositiveIntegerField()
    xp = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ['user', 'date', 'type']
        indexes = [
            models.Index(fields=['date', 'type'], name='snapshot_date_type_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.type} #{self.rank} on {self.date}"
