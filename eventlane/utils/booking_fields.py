"""Normalisation helpers for booking columns: dates, HH:MM:SS times and derived timestamps."""
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo
from eventlane import config

_HH_MM = re.compile(r"^\d{2}:\d{2}$")
_HH_MM_SS = re.compile(r"^\d{2}:\d{2}:\d{2}$")

UPDATABLE_COLUMNS = {
    "event_name",
    "event_type",
    "event_date",
    "guest_count",
    "start_time",
    "end_time",
    "event_start_at",
    "event_end_at",
    "pending_changes",
    "needs_owner_approval",
    "status",
}

FIELD_TYPES = {
    "event_name": "text",
    "event_type": "text",
    "event_date": "date",
    "guest_count": "int",
    "start_time": "time",
    "end_time": "time",
    "event_start_at": "timestamp",
    "event_end_at": "timestamp",
    "pending_changes": "json",
    "needs_owner_approval": "bool",
    "status": "text",
}

_TRUE_WORDS = {"true", "t", "1", "yes", "y", "on"}
_FALSE_WORDS = {"false", "f", "0", "no", "n", "off"}


def local_tz() -> tzinfo:
    if config.APP_TIMEZONE.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(config.APP_TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_today(now: Optional[datetime] = None) -> date:
    now = as_utc(now) if now is not None else utc_now()
    return now.astimezone(local_tz()).date()


def normalize_time(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    text = str(value).strip()
    if not text:
        return None
    if _HH_MM_SS.match(text):
        return text
    if _HH_MM.match(text):
        return f"{text}:00"
    return None


def normalize_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def ranges_overlap(start_a, end_a, start_b, end_b) -> bool:
    """Half-open ranges; back-to-back ranges do not overlap."""
    return start_a < end_b and start_b < end_a


def build_event_timestamps(
    event_date: Any, start_time: Any, end_time: Any
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Derive event_start_at/event_end_at; an end at or before the start rolls to the next day."""
    day = normalize_date(event_date)
    start = normalize_time(start_time)
    end = normalize_time(end_time)
    if not day or not start or not end:
        return None, None

    tz = local_tz()
    start_at = datetime.combine(day, time.fromisoformat(start), tzinfo=tz)
    end_day = day if start < end else day + timedelta(days=1)
    end_at = datetime.combine(end_day, time.fromisoformat(end), tzinfo=tz)
    return start_at.astimezone(timezone.utc), end_at.astimezone(timezone.utc)


def _to_bool(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


def _to_int(raw: Any) -> Optional[int]:
    if raw == "" or isinstance(raw, bool):
        return None
    try:
        number = Decimal(str(raw))
    except (ArithmeticError, ValueError):
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def _to_timestamp(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return as_utc(raw)
    try:
        return as_utc(datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00")))
    except ValueError:
        return None


def sanitize_patch(patch: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep only updatable columns, coerced to their column type.

    Explicit ``None`` survives (it clears the column); values that cannot be
    coerced are dropped rather than written.
    """
    clean: Dict[str, Any] = {}
    for key, raw in (patch or {}).items():
        if key not in UPDATABLE_COLUMNS:
            continue
        if raw is None:
            clean[key] = None
            continue

        kind = FIELD_TYPES.get(key, "text")
        if kind == "int":
            value = _to_int(raw)
        elif kind == "bool":
            value = _to_bool(raw)
        elif kind == "date":
            value = normalize_date(raw)
        elif kind == "time":
            value = normalize_time(raw)
        elif kind == "timestamp":
            value = _to_timestamp(raw)
        elif kind == "json":
            if raw == "":
                clean[key] = None
                continue
            value = raw if isinstance(raw, dict) else None
        else:
            value = str(raw)

        if value is None:
            continue
        clean[key] = value
    return clean


def to_json_value(value: Any) -> Any:
    """Render a column value the way it is stored inside pending_changes."""
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value
