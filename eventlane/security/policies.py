"""Row-level access rules for writes to bookings."""
from typing import Any, Dict
from eventlane import config

DETAIL_COLUMNS = {
    "event_name",
    "event_type",
    "event_date",
    "guest_count",
    "start_time",
    "end_time",
    "event_start_at",
    "event_end_at",
}
CHANGE_REQUEST_COLUMNS = {"pending_changes", "needs_owner_approval"}

INSUFFICIENT_PRIVILEGE = "42501"
RAISED_EXCEPTION = "P0001"

DIRECT_MODIFY_MESSAGE = "Cannot directly modify booking details; submit a change request"


class PolicyViolation(Exception):
    def __init__(self, message: str, code: str = INSUFFICIENT_PRIVILEGE):
        super().__init__(message)
        self.code = code
        self.message = message


def is_direct_modify_blocked(error: Exception) -> bool:
    """Recognise the refusals that should divert an edit into a change request."""
    if error is None:
        return False
    code = getattr(error, "code", None)
    message = str(getattr(error, "message", error) or "").lower()
    return (
        code in (RAISED_EXCEPTION, INSUFFICIENT_PRIVILEGE)
        or "cannot directly modify booking details" in message
        or "submit a change request" in message
    )


def enforce_booking_update(
    booking,
    patch: Dict[str, Any],
    actor_id: str,
    is_venue_owner: bool = False,
    is_admin: bool = False,
) -> None:
    if is_admin or is_venue_owner:
        return

    if str(booking.user_id) != str(actor_id):
        raise PolicyViolation("permission denied for table bookings", INSUFFICIENT_PRIVILEGE)

    columns = set(patch)
    stored = str(booking.status or "").lower()

    if "status" in columns:
        if patch["status"] != "cancelled" or stored != "pending":
            raise PolicyViolation("guests may only cancel pending bookings", INSUFFICIENT_PRIVILEGE)

    if stored == "pending":
        return

    if columns & DETAIL_COLUMNS:
        raise PolicyViolation(DIRECT_MODIFY_MESSAGE, RAISED_EXCEPTION)
    if columns & CHANGE_REQUEST_COLUMNS and not config.GUEST_MAY_FLAG_CHANGES:
        raise PolicyViolation(DIRECT_MODIFY_MESSAGE, RAISED_EXCEPTION)
