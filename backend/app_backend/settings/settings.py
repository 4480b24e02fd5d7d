"""
Base Django settings for the dispatch backend.

Environment variables are read from the repository-level .env file.
"""

import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(os.path.join(BASE_DIR, '..', '.env'))

SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-dispatch-dev-key")
DEBUG = os.getenv("DEBUG", "True") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'rest_framework',
    'channels',

    # Local apps
    'couriers',
    'deliveries',
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

ROOT_URLCONF = 'app_backend.urls'

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

# Database
if os.getenv("DATABASE_NAME") and os.getenv("DATABASE_ENGINE", "sqlite") == "postgresql":
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv("DATABASE_NAME"),
            'USER': os.getenv("DATABASE_USER", "postgres"),
            'PASSWORD': os.getenv("DATABASE_PASSWORD", ""),
            'HOST': os.getenv("DATABASE_HOST", "localhost"),
            'PORT': os.getenv("DATABASE_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
}

# Channels
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

# Redis
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))

# ===========================================
# DISPATCH CONFIGURATION
# ===========================================
DISPATCH_DEFAULT_RADIUS_KM = float(os.getenv("DISPATCH_DEFAULT_RADIUS_KM", 5.0))
DISPATCH_MIN_RADIUS_KM = 1.0
DISPATCH_MAX_RADIUS_KM = float(os.getenv("DISPATCH_MAX_RADIUS_KM", 50.0))

DISPATCH_DEFAULT_DURATION_SECONDS = int(os.getenv("DISPATCH_DEFAULT_DURATION_SECONDS", 60))
DISPATCH_MIN_DURATION_SECONDS = 10
DISPATCH_MAX_DURATION_SECONDS = int(os.getenv("DISPATCH_MAX_DURATION_SECONDS", 300))

DISPATCH_DEFAULT_MAX_ATTEMPTS = int(os.getenv("DISPATCH_DEFAULT_MAX_ATTEMPTS", 3))
DISPATCH_MIN_ATTEMPTS = 1
DISPATCH_MAX_ATTEMPTS = 5

DISPATCH_RADIUS_ESCALATION_FACTOR = 1.5
DISPATCH_DURATION_ESCALATION_FACTOR = 1.2

DISPATCH_MAX_COURIERS_PER_BROADCAST = int(os.getenv("DISPATCH_MAX_COURIERS_PER_BROADCAST", 20))
DISPATCH_COURIER_VIEW_RADIUS_KM = float(os.getenv("DISPATCH_COURIER_VIEW_RADIUS_KM", 10.0))

DISPATCH_READY_SCAN_INTERVAL = float(os.getenv("DISPATCH_READY_SCAN_INTERVAL", 10))
DISPATCH_EXPIRY_SWEEP_INTERVAL = float(os.getenv("DISPATCH_EXPIRY_SWEEP_INTERVAL", 30))

DISPATCH_DEFAULT_SERVICE_AREA = "Lefkosa"

# ===========================================
# CELERY CONFIGURATION
# ===========================================
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", f"redis://{REDIS_HOST}:{REDIS_PORT}/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", f"redis://{REDIS_HOST}:{REDIS_PORT}/0")
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    'process-ready-broadcasts': {
        'task': 'deliveries.tasks.process_ready_broadcasts_task',
        'schedule': timedelta(seconds=DISPATCH_READY_SCAN_INTERVAL),
    },
    'process-expired-broadcasts': {
        'task': 'deliveries.tasks.process_expired_broadcasts_task',
        'schedule': timedelta(seconds=DISPATCH_EXPIRY_SWEEP_INTERVAL),
    },
}

# ===========================================
# LOGGING CONFIGURATION
# ===========================================
DISPATCH_LOG_LEVEL = os.getenv("DISPATCH_LOG_LEVEL", "INFO")

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'services': {
            'handlers': ['console'],
            'level': DISPATCH_LOG_LEVEL,
            'propagate': False,
        },
        'deliveries': {
            'handlers': ['console'],
            'level': DISPATCH_LOG_LEVEL,
            'propagate': False,
        },
        'realtime': {
            'handlers': ['console'],
            'level': DISPATCH_LOG_LEVEL,
            'propagate': False,
        },
    },
}
