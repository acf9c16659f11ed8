from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone


class TimezoneUtils:
    """UTC helpers shared by models and services.

    SQLite hands back naive datetimes even for timezone-aware columns, so every
    comparison goes through ``ensure_timezone_aware``.
    """

    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def hours_from_now(hours: int) -> datetime:
        return TimezoneUtils.utc_now() + timedelta(hours=hours)

    @staticmethod
    def ensure_timezone_aware(
        dt: datetime | None, assume_utc: bool = True
    ) -> datetime | None:
        """Guarantee that a datetime carries timezone information."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            if not assume_utc:
                raise ValueError("Naive datetime provided without explicit timezone handling.")
            return dt.replace(tzinfo=dt_timezone.utc)
        return dt

    @staticmethod
    def safe_datetime_compare(
        dt1: datetime | None, dt2: datetime | None, assume_utc: bool = True
    ) -> bool:
        """Return True when dt1 is later than dt2, handling naive inputs safely."""
        if dt1 is None or dt2 is None:
            return False
        first = TimezoneUtils.ensure_timezone_aware(dt1, assume_utc)
        second = TimezoneUtils.ensure_timezone_aware(dt2, assume_utc)
        return bool(first and second and first > second)

    @staticmethod
    def isoformat(dt: datetime | None) -> str | None:
        aware = TimezoneUtils.ensure_timezone_aware(dt)
        return aware.isoformat() if aware else None

    @staticmethod
    def parse_iso(value: str | None) -> datetime | None:
        """Parse an ISO-8601 string from an API payload into an aware UTC datetime."""
        if not value:
            return None
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
        return TimezoneUtils.ensure_timezone_aware(parsed).astimezone(dt_timezone.utc)
