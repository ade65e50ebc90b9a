import os

os.environ.setdefault("DEBUG", "True")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYU_MERCHANT_KEY", "TESTKEY")
os.environ.setdefault("PAYU_SALT", "TESTSALT")

from .settings import *  # noqa: E402,F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

FRONTEND_URL = "https://shop.example.com"
PAYU_SIMULATE = False
CARRIER_SIMULATE = True
SHIPMENT_DISPATCH_ASYNC = False
