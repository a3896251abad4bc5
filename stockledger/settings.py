import ast
import os
import os.path

import dj_database_url


def get_list(text):
    return [item.strip() for item in text.split(",")]


def get_bool_from_env(name, default_value):
    if name in os.environ:
        value = os.environ[name]
        try:
            return ast.literal_eval(value)
        except ValueError as e:
            raise ValueError(f"{value} is an invalid value for {name}") from e
    return default_value


DEBUG = get_bool_from_env("DEBUG", True)

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY and DEBUG:
    SECRET_KEY = "stockledger-development-secret-key"

ALLOWED_HOSTS = get_list(os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1"))

DATABASE_CONNECTION_DEFAULT_NAME = "default"

DATABASES = {
    DATABASE_CONNECTION_DEFAULT_NAME: dj_database_url.config(
        default="sqlite:///" + os.path.join(PROJECT_ROOT, "stockledger.sqlite3"),
        conn_max_age=int(os.environ.get("DB_CONN_MAX_AGE", 600)),
    ),
}

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "stockledger.store",
    "stockledger.product",
    "stockledger.order",
    "stockledger.inventory",
    "stockledger.purchase",
    "stockledger.transfer",
]

TIME_ZONE = os.environ.get("TIME_ZONE", "UTC")
USE_TZ = True

# All stored monetary values are integers in the minor unit of this currency.
DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")
DEFAULT_CURRENCY_DECIMAL_PLACES = int(
    os.environ.get("DEFAULT_CURRENCY_DECIMAL_PLACES", 2)
)

DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", 0))

PURCHASE_ORDER_NUMBER_PREFIX = os.environ.get("PURCHASE_ORDER_NUMBER_PREFIX", "PO")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": (
                "%(levelname)s %(asctime)s %(name)s %(process)d %(thread)d %(message)s"
            )
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
    "loggers": {
        "django": {"level": "INFO", "propagate": True},
        "stockledger": {"level": LOG_LEVEL, "propagate": True},
    },
}
