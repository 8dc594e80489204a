from datetime import datetime, timezone

from dateutil import parser, tz


class SystemClock:
    """Wall clock. Returns naive UTC datetimes, the form every column stores."""

    def now(self):
        return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value, default_tz="UTC"):
    """
    Normalise an operator supplied timestamp to naive UTC.

    Strings are parsed as ISO 8601. Naive values are read as local time in
    ``default_tz`` (operators enter dates in the cycle timezone).
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = parser.isoparse(value)
    if value.tzinfo is None:
        zone = tz.gettz(default_tz)
        if zone is None:
            raise ValueError(f"Unknown timezone: {default_tz}")
        value = value.replace(tzinfo=zone)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_utc_naive(value, target_tz):
    """Naive UTC -> aware datetime in ``target_tz``."""
    return value.replace(tzinfo=timezone.utc).astimezone(tz.gettz(target_tz))


def isoformat_z(value):
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + "Z"
