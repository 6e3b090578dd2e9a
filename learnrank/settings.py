"""
Django settings for learnrank project.

Everything environment-specific is read with os.getenv so the same module
serves local runs, the test suite and production.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-learnrank-dev-key')

DEBUG = _env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [h.strip() for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]


# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'gamification.apps.GamificationConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'learnrank.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'learnrank.wsgi.application'


# Database

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Internationalization
# TIME_ZONE defines the calendar day and the Sunday week boundary used by
# streaks, the weekly leaderboard and snapshots.

LANGUAGE_CODE = 'en-us'

TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')

USE_I18N = True

USE_TZ = True


STATIC_URL = 'static/'


# Gamification

GAMIFICATION_SCHEDULER_AUTOSTART = _env_bool('GAMIFICATION_SCHEDULER_AUTOSTART', False)
GAMIFICATION_SNAPSHOT_HOUR = int(os.getenv('GAMIFICATION_SNAPSHOT_HOUR', '0'))
GAMIFICATION_SNAPSHOT_MINUTE = int(os.getenv('GAMIFICATION_SNAPSHOT_MINUTE', '0'))
GAMIFICATION_LEADERBOARD_MAX_LIMIT = int(os.getenv('GAMIFICATION_LEADERBOARD_MAX_LIMIT', '100'))
GAMIFICATION_LEVEL_SYNC_RETRIES = int(os.getenv('GAMIFICATION_LEVEL_SYNC_RETRIES', '5'))
GAMIFICATION_BADGE_CATALOG = os.getenv(
    'GAMIFICATION_BADGE_CATALOG',
    str(BASE_DIR / 'gamification' / 'data' / 'badges.json'),
)


# Logging

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'gamification': {
            'handlers': ['console'],
            'level': os.getenv('GAMIFICATION_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'apscheduler': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    },
}
