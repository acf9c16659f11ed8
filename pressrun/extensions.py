from __future__ import annotations

from flask import current_app, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

__all__ = [
    "db",
    "migrate",
    "limiter",
]

db = SQLAlchemy()
migrate = Migrate(compare_type=True, render_as_batch=True)


def _default_rate_limits():
    """Resolve default rate limits from config or fall back to safe defaults."""
    config_value = current_app.config.get("RATELIMIT_DEFAULT")
    if isinstance(config_value, str) and config_value.strip():
        normalized = (
            config_value.replace(",", ";")
            .replace("|", ";")
            .split(";")
        )
        limits = [entry.strip() for entry in normalized if entry.strip()]
        if limits:
            return ";".join(limits)
    return "5000 per hour;1000 per minute"


def _limiter_key_func():
    """Key tenant traffic by tenant header; anonymous scan traffic by IP address."""
    tenant_id = (request.headers.get("X-Tenant-Id") or "").strip()
    if tenant_id:
        return f"tenant:{tenant_id}"
    return get_remote_address()


limiter = Limiter(
    key_func=_limiter_key_func,
    default_limits=[_default_rate_limits],
)
