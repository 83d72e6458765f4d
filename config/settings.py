"""
Django settings for the vending payment backend.

Every deployment-specific value comes from the environment. Without any
POSTGRES_* variables the project runs on a local SQLite file, which is what
the test suite uses.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key-change-me")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework.authtoken",
    "vending",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "vending.middleware.StoreReadinessMiddleware",
    "vending.middleware.RequestResponseLoggingMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# Database

if os.environ.get("POSTGRES_DB"):
    _pg_options = {"connect_timeout": env_int("DB_CONNECT_TIMEOUT", 10)}
    if os.environ.get("DB_POOL_MAX_SIZE"):
        _pg_options["pool"] = {
            "min_size": env_int("DB_POOL_MIN_SIZE", 1),
            "max_size": env_int("DB_POOL_MAX_SIZE", 20),
            "timeout": env_int("DB_POOL_TIMEOUT", 10),
        }
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "OPTIONS": _pg_options,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
            # SQLite has no row locks; IMMEDIATE takes the database write lock
            # at BEGIN so concurrent settlements serialize.
            "OPTIONS": {
                "timeout": env_int("DB_CONNECT_TIMEOUT", 10),
                "transaction_mode": "IMMEDIATE",
            },
            # File-backed so threaded tests share one test database.
            "TEST": {
                "NAME": os.environ.get(
                    "SQLITE_TEST_PATH", str(BASE_DIR / "test_db.sqlite3")
                ),
            },
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "vending.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Django REST Framework

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "COERCE_DECIMAL_TO_STRING": True,
}

# Vending

VENDING_TRANSACTION_TTL_SECONDS = env_int("VENDING_TRANSACTION_TTL_SECONDS", 600)
VENDING_SWEEP_INTERVAL_SECONDS = env_int("VENDING_SWEEP_INTERVAL_SECONDS", 60)
VENDING_STORE_PING_INTERVAL_SECONDS = env_int("VENDING_STORE_PING_INTERVAL_SECONDS", 300)
VENDING_ID_MAX_ATTEMPTS = env_int("VENDING_ID_MAX_ATTEMPTS", 5)
VENDING_ENFORCE_BASKET_TOTAL = env_bool("VENDING_ENFORCE_BASKET_TOTAL", False)
VENDING_HISTORY_MAX_LIMIT = env_int("VENDING_HISTORY_MAX_LIMIT", 100)

VENDING_OPERATOR_ENABLED = env_bool("VENDING_OPERATOR_ENABLED", False)
VENDING_OPERATOR_BASE_URL = os.environ.get(
    "VENDING_OPERATOR_BASE_URL", "http://localhost:8010"
)
VENDING_OPERATOR_TIMEOUT = env_int("VENDING_OPERATOR_TIMEOUT", 10)

# Celery

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get(
    "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
)
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ACKS_LATE = True
CELERY_BEAT_SCHEDULE = {
    "expire-pending-transactions": {
        "task": "vending.tasks.expire_pending_transactions",
        "schedule": float(VENDING_SWEEP_INTERVAL_SECONDS),
    },
    "ping-ledger-store": {
        "task": "vending.tasks.ping_store",
        "schedule": float(VENDING_STORE_PING_INTERVAL_SECONDS),
    },
}

# Logging

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "vending": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
