"""Date parsing for caller-supplied values."""

from __future__ import annotations

from datetime import date, datetime, timezone

from replenish.core.errors import InputValidationError


def parse_date(value: str | date | datetime | None, field: str = "date") -> date | None:
    """Parse an ISO date (YYYY-MM-DD) or a full ISO datetime, keeping its local date.

    Raises:
        InputValidationError: If value is not a valid ISO date

    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    except ValueError as e:
        raise InputValidationError(f"Invalid {field}: {value!r} (expected YYYY-MM-DD)") from e


def parse_datetime(value: str | datetime, field: str = "datetime") -> datetime:
    """Parse an ISO datetime; a trailing Z is accepted. Result is naive UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise InputValidationError(f"Invalid {field}: {value!r}") from e
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def as_date(value: date | datetime | str) -> date:
    """Normalize a DB-returned day value (SQLite returns strings for date())."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
