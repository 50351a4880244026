import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    PIN_THRESHOLD_JOD=(Decimal, Decimal('120')),
    MAX_PIN_ATTEMPTS=(int, 3),
    PLATFORM_COMMISSION_RATE=(Decimal, Decimal('0.10')),
    OUTBOX_MAX_ATTEMPTS=(int, 5),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

SECRET_KEY = env('SECRET_KEY', default='django-insecure-change-me')
DEBUG = env('DEBUG')
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['localhost', '127.0.0.1'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    'rest_framework',
    'django_filters',
    'drf_yasg',
    'auditlog',

    'accounts',
    'orders',
    'payments',
    'deliveries',
    'escrow',
    'disputes',
    'notifications',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'materials_api.middleware.UserActivityLoggingMiddleWare',
]

ROOT_URLCONF = 'materials_api.urls'

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

WSGI_APPLICATION = 'materials_api.wsgi.application'

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

AUTH_USER_MODEL = 'accounts.CustomUser'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Asia/Amman'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
    ),
    'DEFAULT_THROTTLE_RATES': {
        'delivery_pin': env('PIN_THROTTLE_RATE', default='10/min'),
    },
    'EXCEPTION_HANDLER': 'materials_api.exceptions.api_exception_handler',
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=30),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
}

SITE_NAME = env('SITE_NAME', default='Materials Marketplace')
DEFAULT_FROM_EMAIL = env('DEFAULT_FROM_EMAIL', default='no-reply@materials.local')
EMAIL_BACKEND = env('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')

# Delivery confirmation rules, read per call through deliveries.rules.DeliveryRules
PIN_THRESHOLD_JOD = env('PIN_THRESHOLD_JOD')
MAX_PIN_ATTEMPTS = env('MAX_PIN_ATTEMPTS')
DELIVERY_PHOTO_ALLOWED_HOSTS = env.list('DELIVERY_PHOTO_ALLOWED_HOSTS', default=[])

PLATFORM_COMMISSION_RATE = env('PLATFORM_COMMISSION_RATE')

PAYMENT_GATEWAY_PROVIDER = env('PAYMENT_GATEWAY_PROVIDER', default='manual')
HYPERPAY_BASE_URL = env('HYPERPAY_BASE_URL', default='https://eu-test.oppwa.com')
HYPERPAY_ENTITY_ID = env('HYPERPAY_ENTITY_ID', default='')
HYPERPAY_ACCESS_TOKEN = env('HYPERPAY_ACCESS_TOKEN', default='')
HYPERPAY_TIMEOUT = env.int('HYPERPAY_TIMEOUT', default=15)

OUTBOX_MAX_ATTEMPTS = env('OUTBOX_MAX_ATTEMPTS')

CELERY_BROKER_URL = env('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=False)
CELERY_BEAT_SCHEDULE = {
    'dispatch-pending-releases': {
        'task': 'escrow.tasks.task_dispatch_pending_releases',
        'schedule': 60.0,
    },
    'dispatch-outbox': {
        'task': 'notifications.tasks.task_dispatch_outbox',
        'schedule': 30.0,
    },
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
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
        'level': env('LOG_LEVEL', default='INFO'),
    },
    'loggers': {
        'audit': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
