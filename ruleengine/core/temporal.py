"""ISO-8601 parsing shared by rule validation and the date operators."""

from datetime import date, datetime, time, timezone


def parse_temporal(value: str) -> date | datetime:
    """Parse an ISO-8601 date or datetime; raises ValueError otherwise."""
    text = value.strip()
    if "T" not in text and " " not in text and len(text) <= 10:
        return date.fromisoformat(text)
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def as_utc_datetime(value: date | datetime) -> datetime:
    """Widen a date to midnight and treat naive datetimes as UTC."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
