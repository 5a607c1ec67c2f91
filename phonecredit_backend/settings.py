"""
Django settings for the phone financing platform.

Every deployment-specific value is read from the environment (a local `.env`
file is loaded first when present).
"""
from pathlib import Path
import os

from dotenv import load_dotenv


# ========================================
# ENV HELPERS
# ========================================

def env_bool(key, default=False):
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_int(key, default):
    try:
        return int(os.environ.get(key, "").strip())
    except ValueError:
        return default


def env_csv(key, default=""):
    raw = os.environ.get(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


# ========================================
# CORE
# ========================================

SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY",
    "django-insecure-phonecredit-dev-key-change-me",
)
DEBUG = env_bool("DEBUG", False)
ALLOWED_HOSTS = env_csv("ALLOWED_HOSTS", "localhost,127.0.0.1")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third party
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_yasg",

    # Local apps
    "home",
    "customer",
    "finance.apps.FinanceConfig",
    "customer_device",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "phonecredit_backend.urls"
WSGI_APPLICATION = "phonecredit_backend.wsgi.application"

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

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

AUTH_USER_MODEL = "home.CustomUser"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# The business runs on a single civil calendar; delinquency is computed in it.
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("BUSINESS_TIME_ZONE", "America/Mexico_City")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / "media"


# ========================================
# REST FRAMEWORK
# ========================================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
}

SWAGGER_SETTINGS = {
    "SECURITY_DEFINITIONS": {
        "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"},
    },
}


# ========================================
# DEVICE LOCKOUT (MDM)
# ========================================

MDM_DAYS_TO_BLOCK = env_int("MDM_DAYS_TO_BLOCK", 2)
MDM_DAYS_TO_WARN = env_int("MDM_DAYS_TO_WARN", 1)

MDM_API_BASE_URL = os.environ.get("MDM_API_BASE_URL", "https://mdm.manageengine.com/api/v1/mdm")
MDM_TOKEN_URL = os.environ.get("MDM_TOKEN_URL", "https://accounts.zoho.com/oauth/v2/token")
MDM_CLIENT_ID = os.environ.get("MDM_CLIENT_ID", "")
MDM_CLIENT_SECRET = os.environ.get("MDM_CLIENT_SECRET", "")
MDM_REFRESH_TOKEN = os.environ.get("MDM_REFRESH_TOKEN", "")
MDM_REQUEST_TIMEOUT = env_int("MDM_REQUEST_TIMEOUT", 20)

# "lost_mode" toggles the vendor lock flag, "configuration" swaps profiles.
MDM_LOCK_MODE = os.environ.get("MDM_LOCK_MODE", "lost_mode")
MDM_NORMAL_CONFIG_ID = os.environ.get("MDM_NORMAL_CONFIG_ID", "1")
MDM_BLOCKED_CONFIG_ID = os.environ.get("MDM_BLOCKED_CONFIG_ID", "2")
MDM_CONTACT_PHONE = os.environ.get("MDM_CONTACT_PHONE", "")

MDM_CYCLE_INTERVAL_MINUTES = env_int("MDM_CYCLE_INTERVAL_MINUTES", 60)
MDM_CYCLE_HOURS = os.environ.get("MDM_CYCLE_HOURS", "")
MDM_CYCLE_STARTUP_DELAY_SECONDS = env_int("MDM_CYCLE_STARTUP_DELAY_SECONDS", 5)


# ========================================
# LOGGING
# ========================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "customer_device": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "apscheduler": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
