# Status shown to users; expiry and completion are derived from the clock, never stored.
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional
from eventlane import config
from eventlane.schemas.booking_schema import BookingStatus
from eventlane.utils.booking_fields import as_utc, local_today, local_tz, normalize_date, utc_now

TERMINAL_STATUSES = {BookingStatus.cancelled, BookingStatus.completed, BookingStatus.expired}


def is_past(event_date: Any, now: Optional[datetime] = None) -> bool:
    """True when the event date is strictly before today."""
    day = normalize_date(event_date)
    if day is None:
        return False
    return day < local_today(now)


def sla_expired(created_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if created_at is None:
        return False
    now = as_utc(now) if now is not None else utc_now()
    return now - as_utc(created_at) >= timedelta(hours=config.PENDING_SLA_HOURS)


def effective_status(
    stored_status: Any,
    event_date: Any,
    created_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> BookingStatus:
    raw = str(getattr(stored_status, "value", stored_status) or "").strip().lower()

    if raw == BookingStatus.pending.value:
        if is_past(event_date, now) or sla_expired(created_at, now):
            return BookingStatus.expired
        return BookingStatus.pending

    if raw == BookingStatus.confirmed.value:
        if is_past(event_date, now):
            return BookingStatus.completed
        return BookingStatus.confirmed

    return BookingStatus(raw)


def booking_effective_status(booking, now: Optional[datetime] = None) -> BookingStatus:
    return effective_status(booking.status, booking.event_date, booking.created_at, now)


def has_pending_changes(booking) -> bool:
    return bool(booking.needs_owner_approval and booking.pending_changes)


def last_updated_at(booking) -> Optional[datetime]:
    candidates = [
        booking.status_changed_at,
        booking.updated_at,
        booking.confirmed_at,
        booking.completed_at,
        booking.cancelled_at,
        booking.created_at,
    ]
    stamps = [as_utc(stamp) for stamp in candidates if stamp is not None]
    return max(stamps) if stamps else None


def sort_newest(bookings: Iterable) -> List:
    def key(booking):
        stamp = last_updated_at(booking)
        return (stamp is None, -(stamp.timestamp() if stamp else 0))

    return sorted(bookings, key=key)


def sort_closest(bookings: Iterable, now: Optional[datetime] = None) -> List:
    """Upcoming events first by distance; past events after every upcoming one."""
    now = as_utc(now) if now is not None else utc_now()

    def key(booking):
        day: Optional[date] = normalize_date(booking.event_date)
        if day is None:
            return (2, 0.0)
        starts = datetime.combine(day, time.min, tzinfo=local_tz())
        minutes = (starts - now).total_seconds() / 60
        if minutes >= 0:
            return (0, minutes)
        return (1, abs(minutes))

    return sorted(bookings, key=key)


def sort_created_desc(bookings: Iterable) -> List:
    return sorted(
        bookings,
        key=lambda booking: as_utc(booking.created_at).timestamp() if booking.created_at else 0,
        reverse=True,
    )
