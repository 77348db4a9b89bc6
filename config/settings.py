"""
RBO – Django Settings (Infrastructure Only)
============================================
Django hosts the persistent key-value store and the settings the
ledger sync engines read. It does not own any sync logic.

Engine thresholds live in LEDGER_SYNC; core.config.load_sync_config()
turns that dict into a validated SyncConfig.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("RBO_SECRET_KEY", "rbo-dev-key-replace-before-deployment")

DEBUG = os.environ.get("RBO_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── RBO Modules ───────────────────────────────────────
    "adapters.django_store",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("RBO_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Ledger Sync ───────────────────────────────────────────────
LEDGER_SYNC = {
    "STORE_BACKEND": os.environ.get("RBO_STORE_BACKEND", "django"),
    "PARALLEL_SYNC": False,
    "MAX_WORKERS": 4,
    "JOURNAL_REVERSALS": True,
    "ALERT_RULES": {
        "pending_hours": 24,
        "daily_return_threshold": 10,
        "product_return_threshold": 5,
        "customer_return_threshold": 5,
        "expense_spike_ratio": 1.5,
        "expense_history_months": 6,
        "check_due_days": 3,
        "installment_due_days": 7,
        "stale_expense_days": 7,
        "inactive_supplier_days": 60,
    },
}

# ── Logging ───────────────────────────────────────────────────
RBO_LOG_LEVEL = os.environ.get("RBO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "rbo": {"handlers": ["console"], "level": RBO_LOG_LEVEL, "propagate": True},
    },
}
