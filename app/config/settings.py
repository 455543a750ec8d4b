"""
Django settings for config project.
"""
import os
from pathlib import Path
from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# ==========================================
# 1. CORE SETTINGS
# ==========================================

INSECURE_SECRET_KEY = 'django-insecure-dev-key-change-in-prod'

# Lee la secret key del entorno, o usa una insegura solo si no existe (para dev)
SECRET_KEY = os.environ.get('SECRET_KEY', INSECURE_SECRET_KEY)

# DEBUG debe ser True solo si la variable es 'True'
DEBUG = os.environ.get('DEBUG', 'True') == 'True'

if not DEBUG and SECRET_KEY == INSECURE_SECRET_KEY:
    raise ImproperlyConfigured("SECRET_KEY no puede usar el valor de desarrollo en producción.")

# Hosts permitidos separados por coma
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1,0.0.0.0').split(',')


# ==========================================
# 2. INSTALLED APPS
# ==========================================
INSTALLED_APPS = [
    "unfold",  # Admin moderno
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django.contrib.humanize",

    # Local Apps (Módulos)
    "inventory",
    "sales",
    "finance",
]

LOGIN_URL = "admin:login"


# ==========================================
# 3. MIDDLEWARE
# ==========================================
MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    "whitenoise.middleware.WhiteNoiseMiddleware", # <--- Whitenoise va aquí
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

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

# Las mutaciones de unidades se serializan en un solo event loop: desplegar con ASGI.
ASGI_APPLICATION = 'config.asgi.application'
WSGI_APPLICATION = 'config.wsgi.application'


# ==========================================
# 4. DATABASE (PostgreSQL / SQLite en desarrollo)
# ==========================================
DB_ENGINE = os.environ.get('DB_ENGINE', 'sqlite')

if DB_ENGINE == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('POSTGRES_DB', 'ventas_db'),
            'USER': os.environ.get('POSTGRES_USER', 'admin'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', 'admin'),
            'HOST': os.environ.get('DB_HOST', 'db'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }
elif DB_ENGINE == 'sqlite':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.environ.get('SQLITE_PATH', str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    raise ImproperlyConfigured(f"DB_ENGINE no soportado: {DB_ENGINE!r} (usa 'postgresql' o 'sqlite').")


# ==========================================
# 5. PASSWORD VALIDATION
# ==========================================
AUTH_PASSWORD_VALIDATORS = [
    { 'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator', },
]


# ==========================================
# 6. LOCALIZATION
# ==========================================
LANGUAGE_CODE = 'es-mx'
TIME_ZONE = 'America/Mexico_City'
USE_I18N = True
USE_TZ = True


# ==========================================
# 7. STATIC FILES (Whitenoise)
# ==========================================

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    # Archivos Estáticos (CSS, JS del admin) -> Whitenoise
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# ==========================================
# 8. UNFOLD ADMIN UI (Personalización)
# ==========================================
UNFOLD = {
    "SITE_TITLE": "Gestión de Ventas",
    "SITE_HEADER": "Panel Administrativo",
    "SITE_URL": "/",
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ==========================================
# 9. LOGGING
# ==========================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
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
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
}

# ==========================================
# 10. CONCILIACIÓN DE VENTAS / INVENTARIO
# ==========================================
# Conciliar la venta al registrar o eliminar un pago (on_commit).
SALES_AUTO_RECONCILE = os.environ.get('SALES_AUTO_RECONCILE', 'True') == 'True'

# Notificaciones recientes conservadas por colección de unidades.
INVENTORY_NOTIFICATION_HISTORY = int(os.environ.get('INVENTORY_NOTIFICATION_HISTORY', '20'))
