"""Django settings for running the stockkeeper test suite."""

import os
import tempfile

SECRET_KEY = 'stockkeeper-tests'
DEBUG = False
USE_TZ = True
TIME_ZONE = 'UTC'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.sessions',
    'stockkeeper',
]

MIDDLEWARE = [
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
]
ROOT_URLCONF = 'stockkeeper.tests.urls'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# File database so threaded tests see each other's commits.
# IMMEDIATE makes every write transaction take the database lock at BEGIN.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.path.join(tempfile.gettempdir(), 'stockkeeper.sqlite3'),
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 20,
        },
        'TEST': {
            'NAME': os.path.join(tempfile.gettempdir(), 'stockkeeper_test.sqlite3'),
        },
    },
}

STOCKKEEPER = {}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {'class': 'logging.NullHandler'},
    },
    'loggers': {
        'stockkeeper': {'handlers': ['null'], 'level': 'DEBUG'},
    },
}
