from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from eventlane.logger import get_logger
from eventlane.models.booking_model import Booking
from eventlane.models.user_model import User
from eventlane.schemas.booking_schema import (
    BookingEditResponse,
    BookingFieldEdit,
    BookingStatus,
    ChangeRecordedVia,
    ConfirmRequest,
    TimeRangeUpdate,
)
from eventlane.security.policies import PolicyViolation, is_direct_modify_blocked
from eventlane.services.activity_service import safe_log
from eventlane.services.availability import check_venue_availability, raise_if_unavailable
from eventlane.services.booking_crud import booking_crud, is_manager
from eventlane.services.booking_status import TERMINAL_STATUSES, booking_effective_status
from eventlane.services.procedures import ProcedureUnavailable, call_procedure
from eventlane.utils.booking_fields import build_event_timestamps, normalize_date, to_json_value

logger = get_logger(__name__)

SCHEDULE_KEYS = ("event_date", "start_time", "end_time")
DERIVED_KEYS = ("event_start_at", "event_end_at")
PENDING_APPROVAL_MESSAGE = "Your update is pending venue owner approval."


def _refuse_terminal(booking: Booking, now: Optional[datetime], detail: Optional[str] = None) -> BookingStatus:
    effective = booking_effective_status(booking, now)
    if effective in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail or f"This booking is already {effective.value}.",
        )
    return effective


def _require_manager(booking: Booking, user: User, action: str) -> None:
    if not is_manager(booking, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the venue owner can {action} this booking.",
        )


def _apply(db: Session, booking: Booking, patch: Dict[str, Any], user: User) -> Booking:
    try:
        return booking_crud.apply_update(db, booking, patch, user)
    except PolicyViolation as e:
        logger.warning(f"Update of booking {booking.id} refused for user {user.id}: {e.message}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)


def _check_capacity(booking: Booking, guest_count: Optional[int]) -> None:
    if guest_count is None:
        return
    if guest_count < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Guest count must be at least 1.",
        )
    cap = int(booking.venue.capacity_max or 0) if booking.venue else 0
    if cap > 0 and guest_count > cap:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"This venue allows up to {cap} guests.",
        )


def _proposes(booking: Booking, user: User) -> bool:
    """Edits by the guest of a booking past ``pending`` become change requests."""
    return not is_manager(booking, user) and str(booking.status).lower() != BookingStatus.pending.value


def _proposed_schedule(booking: Booking, proposal: Optional[Dict[str, Any]]):
    proposal = proposal or {}
    return (
        normalize_date(proposal.get("event_date")) or booking.event_date,
        proposal.get("start_time") or booking.start_time,
        proposal.get("end_time") or booking.end_time,
    )


def _with_derived_timestamps(booking: Booking, proposal: Dict[str, Any]) -> Dict[str, Any]:
    """Re-derive event_start_at/event_end_at from the proposed schedule on top of the stored one."""
    if not any(proposal.get(key) for key in SCHEDULE_KEYS):
        return proposal
    start_at, end_at = build_event_timestamps(*_proposed_schedule(booking, proposal))
    return {**proposal, "event_start_at": to_json_value(start_at), "event_end_at": to_json_value(end_at)}


class BookingWorkflow:
    @staticmethod
    def confirm(db: Session, booking_id: UUID, user: User, request: ConfirmRequest,
                now: Optional[datetime] = None) -> Booking:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _require_manager(booking, user, "confirm")
        if _refuse_terminal(booking, now) != BookingStatus.pending:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only pending bookings can be confirmed.",
            )

        start = request.start_time or booking.start_time
        end = request.end_time or booking.end_time
        if not start or not end:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please set both start and end time.")
        if start == end:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start and end time cannot be the same.")
        if not booking.event_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please set an event date before confirming.",
            )

        result = raise_if_unavailable(check_venue_availability(
            db, booking.venue_id, booking.event_date, start, end,
            exclude_booking_id=booking.id, can_see_others=True, now=now,
        ))
        if result.warning:
            logger.warning(f"Confirming booking {booking.id} with partial availability check: {result.reason}")

        start_at, end_at = build_event_timestamps(booking.event_date, start, end)
        booking = _apply(db, booking, {
            "status": "confirmed",
            "event_date": booking.event_date,
            "start_time": start,
            "end_time": end,
            "event_start_at": start_at,
            "event_end_at": end_at,
        }, user)
        logger.info(f"Booking {booking.id} confirmed by {user.id}")
        safe_log(db, booking.id, "status_change", {"new_status": "confirmed"}, "Booking confirmed", user.id)
        return booking

    @staticmethod
    def cancel(db: Session, booking_id: UUID, user: User, now: Optional[datetime] = None) -> Booking:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        effective = _refuse_terminal(booking, now)
        if not is_manager(booking, user) and effective != BookingStatus.pending:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Confirmed bookings can only be cancelled by the venue owner.",
            )

        booking = _apply(db, booking, {"status": "cancelled"}, user)
        logger.info(f"Booking {booking.id} cancelled by {user.id}")
        safe_log(db, booking.id, "status_change", {"new_status": "cancelled"}, "Booking cancelled", user.id)
        return booking

    @staticmethod
    def complete(db: Session, booking_id: UUID, user: User, now: Optional[datetime] = None) -> Booking:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _require_manager(booking, user, "complete")
        if _refuse_terminal(booking, now) != BookingStatus.confirmed:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only confirmed bookings can be marked completed.",
            )

        booking = _apply(db, booking, {"status": "completed"}, user)
        logger.info(f"Booking {booking.id} completed by {user.id}")
        safe_log(db, booking.id, "status_change", {"new_status": "completed"}, "Booking marked completed", user.id)
        return booking

    @staticmethod
    def edit_fields(db: Session, booking_id: UUID, user: User, edit: BookingFieldEdit,
                    now: Optional[datetime] = None) -> BookingEditResponse:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _refuse_terminal(booking, now, "This booking can no longer be edited.")

        requested = {k: v for k, v in edit.model_dump(exclude_unset=True).items() if v is not None}
        changes = {k: v for k, v in requested.items() if getattr(booking, k) != v}
        if not changes:
            return BookingEditResponse(
                booking=booking_crud.to_view(booking, user, now), applied=True, message="No changes."
            )

        _check_capacity(booking, changes.get("guest_count"))

        if "event_date" in changes:
            # A guest's new date is checked against the times they already proposed
            base = booking.pending_changes if _proposes(booking, user) else None
            _, start, end = _proposed_schedule(booking, base)
            raise_if_unavailable(check_venue_availability(
                db, booking.venue_id, changes["event_date"], start, end,
                exclude_booking_id=booking.id, can_see_others=is_manager(booking, user), now=now,
            ))
            start_at, end_at = build_event_timestamps(changes["event_date"], start, end)
            changes["event_start_at"] = start_at
            changes["event_end_at"] = end_at

        field = next(iter(requested)) if len(requested) == 1 else "fields"
        return BookingWorkflow._save(db, booking, user, changes, field, now)

    @staticmethod
    def save_time_range(db: Session, booking_id: UUID, user: User, body: TimeRangeUpdate,
                        now: Optional[datetime] = None) -> BookingEditResponse:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _refuse_terminal(booking, now, "This booking can no longer be edited.")

        if body.start_time == body.end_time:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Start and end time cannot be the same.")
        base = booking.pending_changes if _proposes(booking, user) else None
        day, current_start, current_end = _proposed_schedule(booking, base)
        if not day:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please set an event date first.")
        if body.start_time == current_start and body.end_time == current_end:
            return BookingEditResponse(
                booking=booking_crud.to_view(booking, user, now), applied=True, message="No changes."
            )

        raise_if_unavailable(check_venue_availability(
            db, booking.venue_id, day, body.start_time, body.end_time,
            exclude_booking_id=booking.id, can_see_others=is_manager(booking, user), now=now,
        ))

        start_at, end_at = build_event_timestamps(day, body.start_time, body.end_time)
        changes = {
            "start_time": body.start_time,
            "end_time": body.end_time,
            "event_start_at": start_at,
            "event_end_at": end_at,
        }
        return BookingWorkflow._save(db, booking, user, changes, "time_range", now)

    @staticmethod
    def _save(db: Session, booking: Booking, user: User, changes: Dict[str, Any], field: str,
              now: Optional[datetime]) -> BookingEditResponse:
        """Apply an edit directly or route it into a change request, depending on who edits what."""
        new_value = {k: to_json_value(v) for k, v in changes.items()}
        owner = is_manager(booking, user)

        if _proposes(booking, user):
            return BookingWorkflow.propose_change(db, booking, user, new_value, now=now)

        patch = dict(changes)
        if not owner:
            # A guest editing their own pending request supersedes any earlier proposal
            patch.update(needs_owner_approval=False, pending_changes=None)
        try:
            booking = booking_crud.apply_update(db, booking, patch, user)
        except PolicyViolation as e:
            if owner or not is_direct_modify_blocked(e):
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
            logger.warning(f"Direct edit of booking {booking.id} blocked, submitting change request")
            return BookingWorkflow.propose_change(db, booking, user, new_value, now=now)

        logger.info(f"Booking {booking.id} edited ({field}) by {user.id}")
        safe_log(db, booking.id, "edit", {"field": field, "new_value": new_value}, f"Edited {field}", user.id)
        return BookingEditResponse(booking=booking_crud.to_view(booking, user, now), applied=True)

    @staticmethod
    def propose_change(db: Session, booking: Booking, user: User, changes: Dict[str, Any],
                       note: Optional[str] = None, now: Optional[datetime] = None) -> BookingEditResponse:
        """Record a guest's proposed changes for the venue owner to approve.

        Tries a direct write of the change-request columns first, then the
        ``request_booking_change`` procedure, and finally settles for an
        activity entry with an optimistically flagged booking in the response.
        """
        merged = _with_derived_timestamps(booking, {**(booking.pending_changes or {}), **changes})
        changes = {**changes, **{key: merged[key] for key in DERIVED_KEYS if key in merged}}
        via = ChangeRecordedVia.direct
        try:
            booking = booking_crud.apply_update(
                db, booking, {"pending_changes": merged, "needs_owner_approval": True}, user
            )
        except PolicyViolation as e:
            if not is_direct_modify_blocked(e):
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
            try:
                booking = call_procedure(
                    "request_booking_change", db,
                    booking_id=booking.id, changes=changes, actor_id=str(user.id), note=note,
                )
                via = ChangeRecordedVia.procedure
            except (ProcedureUnavailable, PolicyViolation, LookupError) as err:
                logger.warning(f"request_booking_change failed for booking {booking.id}: {str(err)}")
                via = ChangeRecordedVia.activity_only

        logger.info(f"Change requested on booking {booking.id} by {user.id} via {via.value}")
        safe_log(db, booking.id, "pending_change_requested", {"changes": changes}, "Client requested changes", user.id)

        view = booking_crud.to_view(booking, user, now)
        if via == ChangeRecordedVia.activity_only:
            view.pending_changes = merged
            view.needs_owner_approval = True
            view.has_pending_changes = True
            view.can_edit = True
        return BookingEditResponse(booking=view, applied=False, recorded_via=via, message=PENDING_APPROVAL_MESSAGE)

    @staticmethod
    def approve_changes(db: Session, booking_id: UUID, user: User, now: Optional[datetime] = None) -> Booking:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _require_manager(booking, user, "approve changes to")
        _refuse_terminal(booking, now)

        changes = dict(booking.pending_changes or {})
        if not changes:
            if booking.needs_owner_approval or booking.pending_changes is not None:
                booking = _apply(db, booking, {"pending_changes": None, "needs_owner_approval": False}, user)
            return booking

        if any(changes.get(key) for key in SCHEDULE_KEYS):
            day, start, end = _proposed_schedule(booking, changes)
            raise_if_unavailable(check_venue_availability(
                db, booking.venue_id, day, start, end,
                exclude_booking_id=booking.id, can_see_others=True, now=now,
            ))
            changes = _with_derived_timestamps(booking, changes)

        before = {key: to_json_value(getattr(booking, key, None)) for key in changes}
        booking = _apply(db, booking, {**changes, "pending_changes": None, "needs_owner_approval": False}, user)
        after = {key: to_json_value(getattr(booking, key, None)) for key in changes}

        logger.info(f"Changes approved on booking {booking.id} by {user.id}: {sorted(changes)}")
        safe_log(
            db, booking.id, "pending_change_approved",
            {"changes": changes, "before": before, "after": after},
            "Owner approved client changes", user.id,
        )
        return booking

    @staticmethod
    def reject_changes(db: Session, booking_id: UUID, user: User) -> Booking:
        booking = booking_crud.get_visible_booking(db, booking_id, user)
        _require_manager(booking, user, "reject changes to")

        changes = booking.pending_changes
        booking = _apply(db, booking, {"pending_changes": None, "needs_owner_approval": False}, user)
        logger.info(f"Changes rejected on booking {booking.id} by {user.id}")
        safe_log(db, booking.id, "pending_change_rejected", {"changes": changes}, "Owner rejected client changes", user.id)
        return booking


booking_workflow = BookingWorkflow()
