from scheduling.intervals import TimeInterval
from utils.timefmt import parse_instant


class BadPayload(ValueError):
    """Malformed request input; rendered as a 400."""


def read_instant(value, field):
    if value in (None, ""):
        raise BadPayload(f"{field} is required")
    try:
        return parse_instant(value)
    except (TypeError, ValueError, OverflowError):
        raise BadPayload(
            f"Invalid {field}. Use ISO 8601 with an offset e.g. 2025-01-06T09:00:00Z"
        )


def read_interval(start_raw, end_raw, start_field="start_time", end_field="end_time"):
    # InvalidInterval (end <= start) propagates from TimeInterval
    return TimeInterval(read_instant(start_raw, start_field), read_instant(end_raw, end_field))


def read_optional_int(value, field):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadPayload(f"{field} must be an integer")


def read_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes")
