from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from eventlane import config
from eventlane.logger import get_logger
from eventlane.models.booking_model import Booking
from eventlane.models.booking_change_request_model import BookingChangeRequest
from eventlane.realtime.feed import UPDATE, change_feed, row_to_dict
from eventlane.security.policies import INSUFFICIENT_PRIVILEGE, PolicyViolation
from eventlane.utils.booking_fields import (
    as_utc,
    build_event_timestamps,
    normalize_date,
    ranges_overlap,
)

logger = get_logger(__name__)


class ProcedureUnavailable(Exception):
    def __init__(self, name: str, reason: str = "procedure is not installed"):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


def _booking_range(booking: Booking):
    start_at, end_at = as_utc(booking.event_start_at), as_utc(booking.event_end_at)
    if start_at is None or end_at is None:
        start_at, end_at = build_event_timestamps(booking.event_date, booking.start_time, booking.end_time)
    return start_at, end_at


def find_overlapping_booking(
    db: Session,
    venue_id: str,
    event_date: Any,
    start_time: Any,
    end_time: Any,
    statuses=("confirmed",),
    exclude_booking_id: Optional[str] = None,
) -> Optional[Booking]:
    """First booking whose derived range overlaps the candidate one.

    Overnight events spill into the next day, so the neighbouring dates are
    searched as well.
    """
    day = normalize_date(event_date)
    start_at, end_at = build_event_timestamps(day, start_time, end_time)
    if start_at is None:
        return None

    query = db.query(Booking).filter(
        Booking.venue_id == str(venue_id),
        Booking.event_date.in_([day - timedelta(days=1), day, day + timedelta(days=1)]),
        Booking.status.in_(list(statuses)),
    )
    if exclude_booking_id:
        query = query.filter(Booking.id != str(exclude_booking_id))

    for other in query.all():
        other_start, other_end = _booking_range(other)
        if other_start is None:
            continue
        if ranges_overlap(start_at, end_at, other_start, other_end):
            return other
    return None


def check_booking_overlap(
    db: Session,
    venue_id: str,
    event_date: Any,
    start_time: Any,
    end_time: Any,
    exclude_booking_id: Optional[str] = None,
) -> Dict[str, Any]:
    other = find_overlapping_booking(
        db, venue_id, event_date, start_time, end_time, exclude_booking_id=exclude_booking_id
    )
    if other is None:
        return {"has_overlap": False}
    logger.info(f"Overlap on venue {venue_id} {normalize_date(event_date)} with booking {other.id}")
    return {"has_overlap": True, "reason": "time_overlap", "booking_id": other.id}


def request_booking_change(
    db: Session,
    booking_id: str,
    changes: Dict[str, Any],
    actor_id: Optional[str] = None,
    note: Optional[str] = None,
) -> Booking:
    booking = db.query(Booking).filter(Booking.id == str(booking_id)).first()
    if booking is None:
        raise LookupError(f"booking {booking_id} does not exist")
    if actor_id is not None and str(booking.user_id) != str(actor_id):
        raise PolicyViolation("only the booking author may request changes", INSUFFICIENT_PRIVILEGE)

    old = row_to_dict(booking)
    db.add(BookingChangeRequest(
        booking_id=booking.id,
        proposed_changes=changes,
        actor_id=actor_id,
        note=note,
        status="pending",
    ))
    booking.pending_changes = {**(booking.pending_changes or {}), **changes}
    booking.needs_owner_approval = True
    booking.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(booking)
    change_feed.publish("bookings", UPDATE, new=row_to_dict(booking), old=old, actor_id=actor_id)
    return booking


PROCEDURES = {
    "check_booking_overlap": check_booking_overlap,
    "request_booking_change": request_booking_change,
}


def call_procedure(name: str, db: Session, **params):
    procedure = PROCEDURES.get(name)
    if procedure is None or name not in config.ENABLED_PROCEDURES:
        raise ProcedureUnavailable(name)
    try:
        return procedure(db, **params)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Procedure {name} failed: {str(e)}")
        raise ProcedureUnavailable(name, str(e)) from e
