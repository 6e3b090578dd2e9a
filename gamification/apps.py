from django.apps import AppConfig
from django.conf import settings


class GamificationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gamification'
    verbose_name = 'Gamification'

    def ready(self):
        # Web workers only run the nightly job when asked to; a single
        # dedicated process can use the run_scheduler command instead.
        if getattr(settings, 'GAMIFICATION_SCHEDULER_AUTOSTART', False):
            from .scheduler import start_scheduler
            start_scheduler()
