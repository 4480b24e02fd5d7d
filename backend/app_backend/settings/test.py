from .settings import *

DEBUG = False
SECRET_KEY = "dispatch-test-key"

# File-backed test database so threaded tests share one database
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': str(BASE_DIR / 'test_db.sqlite3'),
        'OPTIONS': {
            'timeout': 20,
        },
        'TEST': {
            'NAME': str(BASE_DIR / 'test_dispatch.sqlite3'),
        },
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

DISPATCH_LOG_LEVEL = "WARNING"
LOGGING['loggers']['services']['level'] = DISPATCH_LOG_LEVEL
LOGGING['loggers']['deliveries']['level'] = DISPATCH_LOG_LEVEL
LOGGING['loggers']['realtime']['level'] = DISPATCH_LOG_LEVEL
