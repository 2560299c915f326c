from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional
from eventlane.services.booking_crud import booking_crud
from eventlane.services.booking_workflow import booking_workflow
from eventlane.services.activity_service import list_activity
from eventlane.schemas.booking_schema import (
    ActivityEntry,
    BookingCreate,
    BookingEditResponse,
    BookingFieldEdit,
    BookingResponse,
    BookingSort,
    BookingStatus,
    BookingSummary,
    CalendarDay,
    ConfirmRequest,
    TimeRangeUpdate,
)
from eventlane.database import get_db
from eventlane.realtime.broadcast import unread_registry
from eventlane.security.auth import get_current_active_user
from eventlane.models.user_model import User
from eventlane.logger import get_logger

booking_router = APIRouter()
logger = get_logger(__name__)


def _server_error(action: str, e: Exception):
    logger.error(f"Error {action}: {str(e)}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error occurred while {action}",
    )


# GUEST ENDPOINTS

@booking_router.post(
    "/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED
)
def create_booking(
    booking: BookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Request a booking for a venue"""
    try:
        logger.info(f"User {current_user.email} requesting venue {booking.venue_id} on {booking.event_date}")
        db_booking = booking_crud.create_booking(db, booking, current_user.id)
        return booking_crud.to_view(db_booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("creating booking", e)


@booking_router.get(
    "/bookings", response_model=List[BookingResponse], status_code=status.HTTP_200_OK
)
def list_bookings(
    tab: Optional[BookingStatus] = Query(None, description="Effective status to show"),
    event_type: Optional[str] = Query(None, description="Filter by event type"),
    venue_id: Optional[UUID] = Query(None, description="Filter by venue"),
    only_pending_changes: bool = Query(False, description="Only bookings awaiting my approval"),
    sort: Optional[BookingSort] = Query(None, description="newest or closest"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Bookings I made and bookings on venues I own"""
    try:
        logger.info(f"User {current_user.email} listing bookings")
        return booking_crud.list_bookings(
            db,
            current_user,
            tab=tab,
            event_type=event_type,
            venue_id=venue_id,
            only_pending_changes=only_pending_changes,
            sort=sort,
        )

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("retrieving bookings", e)


@booking_router.get(
    "/bookings/summary", response_model=BookingSummary, status_code=status.HTTP_200_OK
)
def booking_summary(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        store = unread_registry.get(current_user.id)
        by_booking = store.snapshot()["by_booking"] if store else {}
        return booking_crud.summary(db, current_user, unread_by_booking=by_booking)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("summarising bookings", e)


@booking_router.get(
    "/bookings/calendar", response_model=List[CalendarDay], status_code=status.HTTP_200_OK
)
def booking_calendar(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Pending and confirmed bookings grouped by event date"""
    try:
        return booking_crud.calendar(db, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("building calendar", e)


@booking_router.get(
    "/bookings/{booking_id}", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Booking detail; viewing it clears its unread update count"""
    try:
        booking = booking_crud.get_visible_booking(db, booking_id, current_user)
        store = unread_registry.get(current_user.id)
        if store:
            store.mark_booking_read(booking.id)
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"retrieving booking {booking_id}", e)


@booking_router.get(
    "/bookings/{booking_id}/activity", response_model=List[ActivityEntry], status_code=status.HTTP_200_OK
)
def get_booking_activity(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        booking = booking_crud.get_visible_booking(db, booking_id, current_user)
        return list_activity(db, booking)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"retrieving activity for booking {booking_id}", e)


@booking_router.patch(
    "/bookings/{booking_id}", response_model=BookingEditResponse, status_code=status.HTTP_200_OK
)
def edit_booking(
    booking_id: UUID,
    edit: BookingFieldEdit,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Edit booking details; guest edits to a confirmed booking become a change request"""
    try:
        logger.info(f"User {current_user.email} editing booking {booking_id}")
        return booking_workflow.edit_fields(db, booking_id, current_user, edit)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"editing booking {booking_id}", e)


@booking_router.put(
    "/bookings/{booking_id}/time", response_model=BookingEditResponse, status_code=status.HTTP_200_OK
)
def edit_booking_time(
    booking_id: UUID,
    body: TimeRangeUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} changing time of booking {booking_id}")
        return booking_workflow.save_time_range(db, booking_id, current_user, body)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"changing time of booking {booking_id}", e)


@booking_router.post(
    "/bookings/{booking_id}/cancel", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def cancel_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} cancelling booking {booking_id}")
        booking = booking_workflow.cancel(db, booking_id, current_user)
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"cancelling booking {booking_id}", e)


# VENUE OWNER ENDPOINTS

@booking_router.post(
    "/bookings/{booking_id}/confirm", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def confirm_booking(
    booking_id: UUID,
    request: Optional[ConfirmRequest] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} confirming booking {booking_id}")
        booking = booking_workflow.confirm(db, booking_id, current_user, request or ConfirmRequest())
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"confirming booking {booking_id}", e)


@booking_router.post(
    "/bookings/{booking_id}/complete", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def complete_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} completing booking {booking_id}")
        booking = booking_workflow.complete(db, booking_id, current_user)
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"completing booking {booking_id}", e)


@booking_router.post(
    "/bookings/{booking_id}/changes/approve", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def approve_changes(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} approving changes on booking {booking_id}")
        booking = booking_workflow.approve_changes(db, booking_id, current_user)
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"approving changes on booking {booking_id}", e)


@booking_router.post(
    "/bookings/{booking_id}/changes/reject", response_model=BookingResponse, status_code=status.HTTP_200_OK
)
def reject_changes(
    booking_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} rejecting changes on booking {booking_id}")
        booking = booking_workflow.reject_changes(db, booking_id, current_user)
        return booking_crud.to_view(booking, current_user)

    except HTTPException:
        raise
    except Exception as e:
        raise _server_error(f"rejecting changes on booking {booking_id}", e)
