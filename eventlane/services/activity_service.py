from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from eventlane.logger import get_logger
from eventlane.models.booking_activity_model import BookingActivity
from eventlane.schemas.booking_schema import ActivityEntry, BookingStatus
from eventlane.services.booking_status import booking_effective_status, has_pending_changes
from eventlane.utils.booking_fields import as_utc, utc_now

logger = get_logger(__name__)


def safe_log(
    db: Session,
    booking_id: str,
    type: str,
    details: Optional[Dict[str, Any]] = None,
    message: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> Optional[BookingActivity]:
    """Append to the audit log. Never raises: a failed log write must not fail the action."""
    try:
        entry = BookingActivity(
            booking_id=str(booking_id),
            type=type,
            details=details or {},
            message=message,
            actor_id=str(actor_id) if actor_id else None,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
    except Exception as e:
        db.rollback()
        logger.warning(f"Activity log write failed for booking {booking_id} ({type}): {str(e)}")
        return None


def derived_activity(booking, now: Optional[datetime] = None) -> List[ActivityEntry]:
    """Entries implied by the booking's own columns."""
    items: List[ActivityEntry] = []
    fallback_at = as_utc(booking.updated_at) or as_utc(booking.created_at)

    if booking.created_at:
        items.append(ActivityEntry(
            booking_id=booking.id, type="created", at=as_utc(booking.created_at),
            message="Booking requested", derived=True,
        ))

    effective = booking_effective_status(booking, now)
    status_at = (
        booking.status_changed_at or booking.confirmed_at or booking.cancelled_at
        or booking.completed_at or booking.updated_at or booking.created_at
    )
    items.append(ActivityEntry(
        booking_id=booking.id, type="status_change", at=as_utc(status_at),
        details={"new_status": effective.value},
        message=f"Status: {effective.value.capitalize()}", derived=True,
    ))

    stored = str(booking.status or "").lower()
    if stored == "pending" and effective == BookingStatus.expired:
        items.append(ActivityEntry(
            booking_id=booking.id, type="notice", at=fallback_at,
            message="Automatically marked as Expired (pending too long or date passed)", derived=True,
        ))
    elif stored == "confirmed" and effective == BookingStatus.completed:
        items.append(ActivityEntry(
            booking_id=booking.id, type="notice", at=fallback_at,
            message="Automatically shown as Completed (event date passed)", derived=True,
        ))

    if has_pending_changes(booking):
        items.append(ActivityEntry(
            booking_id=booking.id, type="pending_change_requested", at=fallback_at,
            details={"changes": booking.pending_changes},
            message="Client requested changes", derived=True,
        ))
    return items


def list_activity(db: Session, booking, now: Optional[datetime] = None) -> List[ActivityEntry]:
    """Persisted entries plus derived ones, newest first.

    A derived status entry is dropped when the log already records a change to
    that status.
    """
    stored = (
        db.query(BookingActivity)
        .filter(BookingActivity.booking_id == booking.id)
        .order_by(BookingActivity.at.desc())
        .all()
    )
    logged_statuses = set()
    entries = []
    for row in stored:
        if row.type == "status_change":
            logged_statuses.add(str((row.details or {}).get("new_status") or "*").lower())
        entries.append(ActivityEntry(
            id=row.id, booking_id=row.booking_id, type=row.type, at=as_utc(row.at),
            details=row.details or {}, message=row.message, actor_id=row.actor_id,
        ))

    seen = set()
    for item in derived_activity(booking, now):
        if item.type == "status_change" and logged_statuses and (
            "*" in logged_statuses or item.details["new_status"] in logged_statuses
        ):
            continue
        key = (item.type, item.at, item.message)
        if key in seen:
            continue
        seen.add(key)
        entries.append(item)

    epoch = utc_now() - timedelta(days=365 * 100)
    return sorted(entries, key=lambda entry: entry.at or epoch, reverse=True)
