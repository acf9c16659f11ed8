from __future__ import annotations

import logging
import re
from typing import Iterable

from flask import Flask

DEV_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
PROD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
NOISY_LOGGERS = ("werkzeug", "flask_limiter", "sqlalchemy.engine", "urllib3")

# Scan tokens are bearer credentials for the floor; only their first 8 hex chars may reach the logs.
REDACTIONS = (
    (re.compile(r"[A-Za-z0-9_.+-]+@[A-Za-z0-9-]+\.[A-Za-z0-9-.]+"), "[REDACTED_EMAIL]"),
    (
        re.compile(r"(token|api[_-]?key|secret|password|authorization)\s*[:=]\s*([^\s,;]+)", re.IGNORECASE),
        r"\1=[REDACTED]",
    ),
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_.=:+/]+", re.IGNORECASE), "Bearer [REDACTED]"),
    (re.compile(r"\b([0-9a-f]{8})[0-9a-f]{40}\b", re.IGNORECASE), r"\1…"),
)


def redact(text: str) -> str:
    for pattern, replacement in REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


class PiiRedactionFilter(logging.Filter):
    """Rewrite the rendered message with emails, secrets and scan tokens masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(rendered)
        record.args = None
        return True


def configure_logging(app: Flask) -> None:
    level = _resolve_level(app.config.get("LOG_LEVEL") or ("DEBUG" if app.debug else "INFO"))
    for logger in (logging.getLogger(), logging.getLogger("pressrun"), app.logger):
        logger.setLevel(level)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    production = app.config.get("ENV") == "production" and not app.debug
    formatter = logging.Formatter(PROD_FORMAT if production else DEV_FORMAT)
    redact_pii = app.config.get("LOG_REDACT_PII", True)
    for handlers in (logging.getLogger().handlers, app.logger.handlers):
        _install(handlers, formatter, redact_pii)


def _install(handlers: Iterable[logging.Handler], formatter: logging.Formatter, redact_pii: bool) -> None:
    for handler in handlers:
        handler.setFormatter(formatter)
        already_filtered = any(isinstance(existing, PiiRedactionFilter) for existing in handler.filters)
        if redact_pii and not already_filtered:
            handler.addFilter(PiiRedactionFilter())


def _resolve_level(value) -> int:
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def token_hint(token: str | None) -> str:
    """Short, log-safe prefix of a scan token."""
    if not token:
        return "<none>"
    return f"{token[:8]}…"
