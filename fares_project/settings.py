
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")

# Read DEBUG from environment; defaults to True for local development
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"

ALLOWED_HOSTS = ["*"]

# CSRF trusted origins: supply a comma-separated list of origins (including scheme)
csrf_origins = os.getenv('DJANGO_CSRF_TRUSTED_ORIGINS', '')
if csrf_origins:
    CSRF_TRUSTED_ORIGINS = [s.strip() for s in csrf_origins.split(',') if s.strip()]
else:
    CSRF_TRUSTED_ORIGINS = []

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

INSTALLED_APPS = [
    # auth and contenttypes are imported by DRF; nothing is migrated
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",

    # third party
    "rest_framework",

    # local
    "fares",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # WhiteNoise should be directly after SecurityMiddleware so it can serve static files early
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "fares_project.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "fares_project.wsgi.application"

# Stateless service: fares and distances are never stored
DATABASES = {}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "fares-default",
    },
    # Distance entries only; DjangoDistanceCache.clear() flushes the whole alias.
    # Used when DISTANCE_CACHE_BACKEND=django; point it at redis/memcached in production
    "distance": {
        "BACKEND": os.getenv("DJANGO_CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"),
        "LOCATION": os.getenv("DJANGO_CACHE_LOCATION", "fares-distance"),
    },
}

AUTH_PASSWORD_VALIDATORS = []

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "Europe/Brussels")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "fares": {
            "handlers": ["console"],
            "level": os.getenv("FARES_LOG_LEVEL", "INFO"),
        },
    },
}

# Google Maps
# The server key is used for server-to-server calls (Distance Matrix, Geocoding).
# For backwards compatibility GOOGLE_MAPS_API_KEY is accepted if the server key is not set.
GOOGLE_MAPS_SERVER_KEY = os.getenv("GOOGLE_MAPS_SERVER_KEY", os.getenv("GOOGLE_MAPS_API_KEY", ""))
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", GOOGLE_MAPS_SERVER_KEY)

# Distance lookups: results are cached for 30 minutes by default (seconds)
DISTANCE_CACHE_TTL = int(os.getenv("DISTANCE_CACHE_TTL", str(30 * 60)))
# "memory" keeps a per-process cache, "django" uses CACHES[DISTANCE_CACHE_ALIAS]
DISTANCE_CACHE_BACKEND = os.getenv("DISTANCE_CACHE_BACKEND", "memory")
DISTANCE_CACHE_ALIAS = os.getenv("DISTANCE_CACHE_ALIAS", "distance")
# Timeout for each provider call (seconds); a timeout falls back to the straight-line estimate
DISTANCE_PROVIDER_TIMEOUT = float(os.getenv("DISTANCE_PROVIDER_TIMEOUT", "8"))
# Average urban speed used to derive a duration for straight-line estimates
FALLBACK_SPEED_KMH = float(os.getenv("FALLBACK_SPEED_KMH", "40"))

# Pricing constants
PRICING = {
    "CURRENCY": "EUR",
    "TAX_RATE": 0.21,
    "ROUNDING_PRECISION": 2,
    "VEHICLE_RATES": {
        "standard": {"base": 35.00, "per_km": 2.00, "per_minute": 0.50, "minimum": 40.00},
        "suv": {"base": 42.00, "per_km": 2.15, "per_minute": 0.45, "minimum": 48.00},
        "luxury": {"base": 48.00, "per_km": 2.75, "per_minute": 0.55, "minimum": 55.00},
        "minibus": {"base": 55.00, "per_km": 2.25, "per_minute": 0.45, "minimum": 65.00},
    },
    # Evaluated in order; days use 0 = Sunday .. 6 = Saturday
    "SURCHARGES": {
        "night_time": {
            "kind": "schedule",
            "factor": 1.25,
            "hours": [22, 6],
            "description": "Night rate (22:00 - 06:00)",
        },
        "weekend": {
            "kind": "schedule",
            "factor": 1.15,
            "days": [0, 6],
            "description": "Weekend surcharge",
        },
        "holiday": {
            "kind": "holiday",
            "factor": 1.35,
            # (month, day)
            "dates": [[1, 1], [4, 27], [5, 5], [12, 25], [12, 26]],
            "description": "Public holiday surcharge",
        },
        "rush_hour": {
            "kind": "rush_hour",
            "factor": 1.20,
            "time_ranges": [[7, 9], [17, 19]],
            "days": [1, 2, 3, 4, 5],
            "description": "Rush hour surcharge (07:00-09:00, 17:00-19:00)",
        },
        "airport_pickup": {
            "kind": "airport",
            "factor": 1.10,
            "keywords": ["airport", "luchthaven"],
            "description": "Airport pickup service",
        },
        "short_distance": {
            "kind": "short_distance",
            "factor": 1.50,
            "max_km": 3,
            "description": "Short distance surcharge (< 3 km)",
        },
    },
    # Minutes included in the base fare before the per-minute rate applies
    "FREE_MINUTES": 15,
    "STOPOVER_RATE": 0.10,
    "STOPOVER_MINIMUM": 2.50,
    "RETURN_DISCOUNT": 0.10,
    # Quotes before an address is known: 2 minutes per km, 5 km by default
    "ESTIMATE_MINUTES_PER_KM": 2,
    "ESTIMATE_DEFAULT_KM": 5,
    "WARN_TOTAL": 500,
    "MAX_VALID_TOTAL": 1000,
}

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'
