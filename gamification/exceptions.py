from django.core.exceptions import ObjectDoesNotExist


class GamificationError(Exception):
    """Base class for errors raised by the gamification engine."""


class ProgressNotFound(GamificationError, ObjectDoesNotExist):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"No progress record for user {user_id}")


class ProgressConflict(GamificationError):
    """Level recompute kept losing to concurrent XP writes."""

    def __init__(self, user_id, attempts):
        self.user_id = user_id
        self.attempts = attempts
        super().__init__(f"Could not sync level for user {user_id} after {attempts} attempts")


class LessonAlreadyCompleted(GamificationError):
    def __init__(self, user_id, lesson_id):
        self.user_id = user_id
        self.lesson_id = lesson_id
        super().__init__(f"User {user_id} already completed lesson {lesson_id}")
