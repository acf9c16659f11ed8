"""
Environment-driven settings.

``FLASK_ENV`` picks one of the config classes below; every other knob is read
from the process environment once at import time. Malformed values fall back to
their defaults and are reported through ``ENV_DIAGNOSTICS`` instead of failing
the boot.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, TypeVar
from urllib.parse import urlparse

T = TypeVar("T")

ENV_VAR = "FLASK_ENV"
ENVIRONMENTS = ("development", "testing", "staging", "production")
LOCAL_ENVIRONMENTS = frozenset({"development", "testing"})
LOCAL_BASE_URL = "http://localhost:5000"

_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


@dataclass
class Settings:
    """Typed view over environment variables that records parse problems."""

    source: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    warnings: list[str] = field(default_factory=list)

    def get(self, key: str, default: str | None = None) -> str | None:
        value = (self.source.get(key) or "").strip()
        return value or default

    def _parse(self, key: str, default: T, parser: Callable[[str], T], kind: str) -> T:
        value = self.get(key)
        if value is None:
            return default
        try:
            return parser(value)
        except (TypeError, ValueError, KeyError):
            self.warnings.append(f"{key}={value!r} is not a valid {kind}; using {default!r}.")
            return default

    def integer(self, key: str, default: int = 0) -> int:
        return self._parse(key, default, int, "integer")

    def number(self, key: str, default: float = 0.0) -> float:
        return self._parse(key, default, float, "number")

    def flag(self, key: str, default: bool = False) -> bool:
        return self._parse(key, default, lambda raw: _BOOL_WORDS[raw.lower()], "boolean")

    def database_url(self, key: str = "DATABASE_URL") -> str | None:
        url = self.get(key)
        if url and url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url


@dataclass(frozen=True)
class ActiveEnvironment:
    name: str
    raw_value: str


def _active_environment(settings: Settings) -> ActiveEnvironment:
    raw_value = settings.get(ENV_VAR, ENVIRONMENTS[0])
    name = raw_value.lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(f"Invalid {ENV_VAR}={raw_value!r}. Expected one of {list(ENVIRONMENTS)}.")
    return ActiveEnvironment(name=name, raw_value=raw_value)


def _base_url(settings: Settings, environment: str) -> str:
    """Public URL printed into scan links; only local environments may omit it."""
    value = settings.get("APP_BASE_URL")
    if value:
        return value.rstrip("/")
    if environment not in LOCAL_ENVIRONMENTS:
        raise RuntimeError("APP_BASE_URL must be set for staging and production environments.")
    settings.warnings.append(f"APP_BASE_URL not set; scan links will use {LOCAL_BASE_URL}.")
    return LOCAL_BASE_URL


settings = Settings()
ACTIVE_ENV = _active_environment(settings)
_PUBLIC_URL = _base_url(settings, ACTIVE_ENV.name)


class BaseConfig:
    FLASK_ENV = ACTIVE_ENV.name
    SECRET_KEY = settings.get("FLASK_SECRET_KEY", "devkey-please-change-in-production")
    JSON_SORT_KEYS = False

    APP_BASE_URL = _PUBLIC_URL
    PREFERRED_URL_SCHEME = urlparse(_PUBLIC_URL).scheme or "https"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": settings.integer("SQLALCHEMY_POOL_SIZE", 20),
        "max_overflow": settings.integer("SQLALCHEMY_MAX_OVERFLOW", 10),
        "pool_timeout": settings.integer("SQLALCHEMY_POOL_TIMEOUT", 30),
        "pool_recycle": settings.integer("SQLALCHEMY_POOL_RECYCLE", 1800),
        "pool_pre_ping": True,
    }

    # Flask-Limiter storage; use redis:// when several workers share limits.
    RATELIMIT_STORAGE_URI = settings.get("RATELIMIT_STORAGE_URI") or settings.get("REDIS_URL") or "memory://"
    RATELIMIT_ENABLED = settings.flag("RATELIMIT_ENABLED", True)
    RATELIMIT_DEFAULT = settings.get("RATELIMIT_DEFAULT", "5000 per hour;1000 per minute")
    SCAN_RATE_LIMIT = settings.get("SCAN_RATE_LIMIT", "30 per minute")

    LOG_LEVEL = settings.get("LOG_LEVEL", "WARNING")
    LOG_REDACT_PII = settings.flag("LOG_REDACT_PII", True)

    # Order/checkout service read by batch formation
    ORDER_SERVICE_URL = settings.get("ORDER_SERVICE_URL")
    ORDER_SERVICE_TOKEN = settings.get("ORDER_SERVICE_TOKEN")
    ORDER_SERVICE_TIMEOUT = settings.number("ORDER_SERVICE_TIMEOUT", 10.0)
    ASSET_FETCH_TIMEOUT = settings.number("ASSET_FETCH_TIMEOUT", 15.0)

    # Production engine behaviour
    FEATURE_DEFAULTS = {
        "inventory.enabled": settings.flag("FEATURE_INVENTORY_ENABLED", True),
    }
    PRODUCTION_RELEASE_ON_CANCEL = settings.flag("PRODUCTION_RELEASE_ON_CANCEL", True)
    PRODUCTION_CONSUME_ON_COMPLETE = settings.flag("PRODUCTION_CONSUME_ON_COMPLETE", True)
    SCAN_TOKEN_TTL_HOURS = settings.integer("SCAN_TOKEN_TTL_HOURS", 0)


def _local_sqlite_uri() -> str:
    instance_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), os.pardir, "instance")
    os.makedirs(instance_dir, exist_ok=True)
    return "sqlite:///" + os.path.join(os.path.abspath(instance_dir), "pressrun.db")


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = settings.database_url() or _local_sqlite_uri()
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 3600}
    LOG_LEVEL = settings.get("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    RATELIMIT_STORAGE_URI = "memory://"


class StagingConfig(BaseConfig):
    ENV = "staging"
    PREFERRED_URL_SCHEME = "https"
    SQLALCHEMY_DATABASE_URI = settings.database_url()
    SQLALCHEMY_ENGINE_OPTIONS = dict(BaseConfig.SQLALCHEMY_ENGINE_OPTIONS, pool_size=10, max_overflow=20)


class ProductionConfig(BaseConfig):
    ENV = "production"
    PREFERRED_URL_SCHEME = "https"
    SQLALCHEMY_DATABASE_URI = settings.database_url()
    LOG_LEVEL = settings.get("LOG_LEVEL", "INFO")


config_map = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

Config = config_map[ACTIVE_ENV.name]
ENV_DIAGNOSTICS = {
    "active": ACTIVE_ENV.name,
    "variables": {ENV_VAR: ACTIVE_ENV.raw_value},
    "warnings": tuple(settings.warnings),
}
