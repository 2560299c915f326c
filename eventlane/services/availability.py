from datetime import datetime
from typing import Any, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from eventlane import config
from eventlane.logger import get_logger
from eventlane.models.booking_model import Booking
from eventlane.schemas.booking_schema import AvailabilityResponse
from eventlane.services.booking_status import is_past
from eventlane.services.procedures import ProcedureUnavailable, call_procedure
from eventlane.utils.booking_fields import normalize_date, normalize_time

logger = get_logger(__name__)

CONFLICT_MESSAGES = {
    "past_date": "The event date cannot be in the past.",
    "same_day_confirmed_exists": "This venue already has a confirmed booking that day.",
    "time_overlap": "The proposed date and time conflict with an existing booking.",
    "overlap_check_unavailable": "Venue availability could not be verified right now. Please try again later.",
}

COARSE_CHECK_WARNING = (
    "We couldn't check all venue availability with your permissions. "
    "Your change will still be applied, but please confirm with the venue owner if necessary."
)


def conflict_message(result: AvailabilityResponse) -> str:
    return CONFLICT_MESSAGES.get(result.reason, "The venue is not available for this date and time.")


def count_confirmed_on_day(db: Session, venue_id: str, event_date: Any, exclude_booking_id: Optional[str] = None) -> int:
    query = db.query(Booking).filter(
        Booking.venue_id == str(venue_id),
        Booking.event_date == normalize_date(event_date),
        Booking.status == "confirmed",
    )
    if exclude_booking_id:
        query = query.filter(Booking.id != str(exclude_booking_id))
    return query.count()


# Steps run in order and the first decisive one wins: missing input, past date,
# coarse same-day check for callers who cannot see other bookings, then the
# overlap procedure (AVAILABILITY_FAIL_OPEN decides when it cannot run).
def check_venue_availability(
    db: Session,
    venue_id: Any,
    event_date: Any,
    start_time: Any,
    end_time: Any,
    exclude_booking_id: Optional[str] = None,
    can_see_others: bool = False,
    now: Optional[datetime] = None,
) -> AvailabilityResponse:
    day = normalize_date(event_date)
    start, end = normalize_time(start_time), normalize_time(end_time)
    if not venue_id or not day or not start or not end:
        logger.warning("Missing parameters for availability check")
        return AvailabilityResponse(ok=True, reason="missing_params")

    if is_past(day, now):
        return AvailabilityResponse(ok=False, reason="past_date")

    warning = None
    coarse_reason = None
    if not can_see_others:
        try:
            if count_confirmed_on_day(db, venue_id, day, exclude_booking_id) > 0:
                return AvailabilityResponse(ok=False, reason="same_day_confirmed_exists")
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Coarse availability check failed for venue {venue_id}: {str(e)}")
            warning = COARSE_CHECK_WARNING
            coarse_reason = "coarse_check_unavailable"

    try:
        data = call_procedure(
            "check_booking_overlap",
            db,
            venue_id=str(venue_id),
            event_date=day,
            start_time=start,
            end_time=end,
            exclude_booking_id=str(exclude_booking_id) if exclude_booking_id else None,
        )
    except ProcedureUnavailable as e:
        if config.AVAILABILITY_FAIL_OPEN:
            logger.warning(f"Overlap check unavailable, allowing: {str(e)}")
            return AvailabilityResponse(ok=True, reason="rpc_failed", warning=warning)
        logger.error(f"Overlap check unavailable, refusing: {str(e)}")
        return AvailabilityResponse(ok=False, reason="overlap_check_unavailable", warning=warning)

    if data and data.get("has_overlap"):
        return AvailabilityResponse(ok=False, reason=data.get("reason") or "time_overlap")
    return AvailabilityResponse(ok=True, reason=coarse_reason, warning=warning)


def raise_if_unavailable(result: AvailabilityResponse) -> AvailabilityResponse:
    if result.ok:
        return result
    code = status.HTTP_400_BAD_REQUEST if result.reason == "past_date" else status.HTTP_409_CONFLICT
    raise HTTPException(status_code=code, detail=conflict_message(result))
