"""
Base settings for cafe_office project.
Shared between local (back-office terminal) and cloud deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-c4f3-0ff1ce-9q!v2m#k8x@l1r$w7t^b5n&z3p*h6d(j0s)y4e')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    "unfold.contrib.forms",
    "unfold.contrib.inlines",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'stock',
    'corsheaders',
    'rest_framework',
    'drf_spectacular',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'cafe_office.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'cafe_office.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# CORS
CORS_ALLOW_ALL_ORIGINS = True


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "Cafe Back Office",
    "SITE_HEADER": "Cafe Back Office",
    "SITE_URL": "/",
    "SITE_SYMBOL": "local_cafe",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Procurement",
                "separator": True,
                "items": [
                    {
                        "title": "Intends",
                        "icon": "assignment",
                        "link": reverse_lazy("admin:stock_intend_changelist"),
                    },
                    {
                        "title": "Purchase Orders",
                        "icon": "shopping_cart",
                        "link": reverse_lazy("admin:stock_purchaseorder_changelist"),
                    },
                    {
                        "title": "Goods Receipts",
                        "icon": "local_shipping",
                        "link": reverse_lazy("admin:stock_grn_changelist"),
                    },
                    {
                        "title": "Payments",
                        "icon": "account_balance_wallet",
                        "link": reverse_lazy("admin:stock_payment_changelist"),
                    },
                ],
            },
            {
                "title": "Inventory",
                "separator": True,
                "items": [
                    {
                        "title": "Ingredients",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:stock_ingredient_changelist"),
                    },
                    {
                        "title": "Stock Movements",
                        "icon": "receipt_long",
                        "link": reverse_lazy("admin:stock_stockmovement_changelist"),
                    },
                    {
                        "title": "Adjustments",
                        "icon": "tune",
                        "link": reverse_lazy("admin:stock_stockadjustment_changelist"),
                    },
                ],
            },
        ],
    },
}

REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',

    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],

    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
        'rest_framework.renderers.BrowsableAPIRenderer',
    ],
}


SPECTACULAR_SETTINGS = {
    'TITLE': 'Cafe Back Office',
    'DESCRIPTION': 'Procurement and inventory reconciliation API',
    'VERSION': '1.0.0',
}


LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
