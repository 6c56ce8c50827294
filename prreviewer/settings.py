"""Настройки Django. Значения берутся из :mod:`prreviewer.config`."""

from pathlib import Path

from prreviewer.config import load_config
from prreviewer.logging import setup_logging

BASE_DIR = Path(__file__).resolve().parent.parent

CONFIG = load_config()

SECRET_KEY = CONFIG.app.secret_key
DEBUG = CONFIG.app.debug
ALLOWED_HOSTS = CONFIG.app.allowed_hosts

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'rest_framework',
    'prreviewer.api',
]

MIDDLEWARE = [
    'prreviewer.middleware.RequestLoggingMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'prreviewer.urls'
WSGI_APPLICATION = 'prreviewer.wsgi.application'


def _database_settings(db):
    if db.engine == 'postgresql':
        return {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': db.name,
            'USER': db.user,
            'PASSWORD': db.password,
            'HOST': db.host,
            'PORT': str(db.port),
            'CONN_MAX_AGE': db.conn_max_age,
            'OPTIONS': {'sslmode': db.sslmode},
        }
    return {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / db.name,
    }


DATABASES = {'default': _database_settings(CONFIG.database)}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

USE_TZ = True
TIME_ZONE = 'UTC'

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}

# Выбор ревьюверов
REVIEWER_RANDOM_SEED = CONFIG.app.random_seed
MAX_REVIEWERS = CONFIG.app.max_reviewers

# Логирование настраивает structlog, конфигурация Django по умолчанию отключена
LOGGING_CONFIG = None
setup_logging(CONFIG.logging)
