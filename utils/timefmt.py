from datetime import datetime, timezone

# Columns hold naive UTC; everything above the models works with aware UTC.


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def storage_now() -> datetime:
    return to_storage(utcnow())


def to_storage(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp that carries an offset ("Z" or "+01:00").
    Raises ValueError for malformed or naive input.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("timestamp required")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError("timestamp must include a UTC offset")
    return parsed.astimezone(timezone.utc)


def isoformat_utc(value):
    if value is None:
        return None
    return from_storage(value).isoformat().replace("+00:00", "Z")
