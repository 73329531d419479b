"""Timestamp Coercion: turns the timestamp shapes found in raw snapshots into datetimes.

Invariants:
    - coerce_timestamp is total: unrecognized input returns None, never raises
    - Every returned datetime is timezone-aware (naive values are taken as UTC)
    - Numbers are epoch milliseconds, matching how the snapshot producer wrote them

Accepted shapes: datetime, date, ISO-8601 strings, int/float epoch millis,
mappings with "seconds"/"_seconds" (+ optional nanoseconds), and objects
exposing to_datetime() or toDate().
"""

from collections.abc import Mapping
from datetime import date, datetime, time, timezone

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _from_epoch_ms(millis: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _from_seconds_mapping(value: Mapping) -> datetime | None:
    seconds = value.get("seconds", value.get("_seconds"))
    nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
    if not _is_number(seconds) or not _is_number(nanos):
        return None
    return _from_epoch_ms(seconds * 1000 + nanos / 1_000_000)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_timestamp(value: object) -> datetime | None:
    """Best-effort conversion of a raw timestamp to an aware datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if _is_number(value):
        return _from_epoch_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    if isinstance(value, Mapping):
        return _from_seconds_mapping(value)
    for converter in ("to_datetime", "toDate"):
        method = getattr(value, converter, None)
        if callable(method):
            converted = method()
            if isinstance(converted, datetime):
                return _aware(converted)
    return None


def sort_key(value: object) -> datetime:
    """Ordering key where absent or unparseable timestamps sort earliest."""
    return coerce_timestamp(value) or EARLIEST
