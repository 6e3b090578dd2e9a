from django.contrib import admin
from .models import Badge, LeaderboardSnapshot, LessonCompletion, StreakLog, UserBadge, UserProgress


@admin.register(UserProgress)
class UserProgressAdmin(admin.ModelAdmin):
    list_display = ['user', 'total_xp', 'level', 'level_title', 'current_streak', 'longest_streak',
                    'lessons_completed', 'last_active_at']
    search_fields = ['user__username', 'user__email']
    ordering = ['-total_xp']
    # Written by the engine only
    readonly_fields = ['total_xp', 'level', 'level_title', 'current_streak', 'longest_streak',
                       'lessons_completed', 'last_active_at', 'version']


@admin.register(Badge)
class BadgeAdmin(admin.ModelAdmin):
    list_display = ['slug', 'name', 'category', 'requirement_type', 'requirement_value', 'requirement_tag',
                    'xp_reward', 'is_secret']
    list_filter = ['category', 'requirement_type', 'is_secret']
    search_fields = ['slug', 'name', 'description']
    ordering = ['category', 'slug']


@admin.register(UserBadge)
class UserBadgeAdmin(admin.ModelAdmin):
    list_display = ['user', 'badge', 'earned_at']
    list_filter = ['badge__category', 'earned_at']
    search_fields = ['user__username', 'badge__slug']
    ordering = ['-earned_at']


@admin.register(StreakLog)
class StreakLogAdmin(admin.ModelAdmin):
    list_display = ['user', 'date', 'checked_in', 'bonus_xp']
    list_filter = ['date']
    search_fields = ['user__username']
    ordering = ['-date']


@admin.register(LessonCompletion)
class LessonCompletionAdmin(admin.ModelAdmin):
    list_display = ['user', 'lesson_id', 'xp_earned', 'time_spent_seconds', 'completed_at']
    list_filter = ['completed_at']
    search_fields = ['user__username', 'lesson_id']
    ordering = ['-completed_at']


@admin.register(LeaderboardSnapshot)
class LeaderboardSnapshotAdmin(admin.ModelAdmin):
    list_display = ['date', 'type', 'rank', 'user', 'xp']
    list_filter = ['type', 'date']
    search_fields = ['user__username']
    ordering = ['-date', 'type', 'rank']
