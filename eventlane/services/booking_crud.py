from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime, timezone
from eventlane.models.booking_model import Booking
from eventlane.models.user_model import User
from eventlane.models.venue_model import Venue
from eventlane.realtime.feed import INSERT, UPDATE, change_feed, row_to_dict
from eventlane.schemas.booking_schema import (
    BookingCreate,
    BookingResponse,
    BookingSort,
    BookingStatus,
    BookingSummary,
    CalendarDay,
)
from eventlane.security.policies import enforce_booking_update
from eventlane.services.activity_service import safe_log
from eventlane.services.procedures import find_overlapping_booking
from eventlane.services.booking_status import (
    TERMINAL_STATUSES,
    booking_effective_status,
    has_pending_changes,
    is_past,
    sort_closest,
    sort_created_desc,
    sort_newest,
)
from eventlane.services.venue_crud import applicable_rate, reservation_fee
from eventlane.utils.booking_fields import (
    build_event_timestamps,
    sanitize_patch,
)
from eventlane.logger import get_logger

logger = get_logger(__name__)

STATUS_STAMPS = {
    "confirmed": "confirmed_at",
    "cancelled": "cancelled_at",
    "completed": "completed_at",
}


def is_venue_owner(booking: Booking, user: User) -> bool:
    return booking.venue is not None and str(booking.venue.owner_id) == str(user.id)


def is_manager(booking: Booking, user: User) -> bool:
    """Venue owner or admin: may act on every column of the booking."""
    return is_venue_owner(booking, user) or user.role == "admin"


def can_edit(booking: Booking, owner_view: bool, now: Optional[datetime] = None) -> bool:
    effective = booking_effective_status(booking, now)
    if effective in TERMINAL_STATUSES:
        return False
    if owner_view:
        return True
    return effective == BookingStatus.pending or (
        effective == BookingStatus.confirmed and bool(booking.needs_owner_approval)
    )


class BookingCRUD:
    @staticmethod
    def create_booking(db: Session, booking: BookingCreate, user_id: UUID, now: Optional[datetime] = None) -> Booking:
        """Create a booking request with capacity and time conflict validation"""
        venue_id_str = str(booking.venue_id)
        user_id_str = str(user_id)

        venue = (
            db.query(Venue)
            .filter(Venue.id == venue_id_str, Venue.is_active == True)
            .first()
        )
        if not venue:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Venue not found or is inactive",
            )

        if booking.start_time == booking.end_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Start and end time cannot be the same.",
            )
        if booking.guest_count < 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Guest count must be at least 1.",
            )
        if venue.capacity_max and booking.guest_count > venue.capacity_max:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"This venue allows up to {venue.capacity_max} guests.",
            )
        if is_past(booking.event_date, now):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The event date cannot be in the past.",
            )

        if BookingCRUD._has_time_conflict(
                db, venue_id_str, booking.event_date, booking.start_time, booking.end_time
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Those hours are already booked for this date.",
            )

        rate = applicable_rate(venue, booking.event_date)
        start_at, end_at = build_event_timestamps(booking.event_date, booking.start_time, booking.end_time)

        try:
            db_booking = Booking(
                user_id=user_id_str,
                venue_id=venue_id_str,
                event_name=booking.event_name,
                event_type=booking.event_type,
                event_date=booking.event_date,
                guest_count=booking.guest_count,
                start_time=booking.start_time,
                end_time=booking.end_time,
                event_start_at=start_at,
                event_end_at=end_at,
                venue_rate=rate,
                reservation_fee=reservation_fee(rate, venue.reservation_fee_percent),
                currency=venue.currency,
                status="pending",
            )
            db.add(db_booking)
            db.commit()
            db.refresh(db_booking)
            logger.info(f"Booking created: {db_booking.id} by user {user_id}")

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating booking: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while creating booking",
            )

        safe_log(db, db_booking.id, "created", {"status": "pending"}, "Booking requested", user_id_str)
        change_feed.publish("bookings", INSERT, new=row_to_dict(db_booking), actor_id=user_id_str)
        return db_booking

    @staticmethod
    def _has_time_conflict(
            db: Session,
            venue_id: str,
            event_date,
            start_time: str,
            end_time: str,
            exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Check for pending or confirmed bookings of the venue whose hours overlap, overnight ones included"""
        return find_overlapping_booking(
            db, venue_id, event_date, start_time, end_time,
            statuses=("pending", "confirmed"), exclude_booking_id=exclude_booking_id,
        ) is not None

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: UUID) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.venue))
            .filter(Booking.id == str(booking_id))
            .first()
        )

    @staticmethod
    def get_booking_or_404(db: Session, booking_id: UUID) -> Booking:
        booking = BookingCRUD.get_booking_by_id(db, booking_id)
        if not booking:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Booking not found",
            )
        return booking

    @staticmethod
    def get_visible_booking(db: Session, booking_id: UUID, user: User) -> Booking:
        """Load a booking the user is a party to (guest, venue owner or admin)"""
        booking = BookingCRUD.get_booking_or_404(db, booking_id)
        if str(booking.user_id) != str(user.id) and not is_manager(booking, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to access this booking",
            )
        return booking

    @staticmethod
    def get_user_bookings(db: Session, user_id: UUID) -> List[Booking]:
        """Bookings the user made merged with bookings on venues they own, newest first"""
        user_id_str = str(user_id)
        authored = (
            db.query(Booking)
            .options(joinedload(Booking.venue))
            .filter(Booking.user_id == user_id_str)
            .all()
        )
        owned = (
            db.query(Booking)
            .join(Venue, Booking.venue_id == Venue.id)
            .options(joinedload(Booking.venue))
            .filter(Venue.owner_id == user_id_str)
            .all()
        )

        merged: Dict[str, Booking] = {}
        for booking in authored + owned:
            merged.setdefault(booking.id, booking)
        return sort_created_desc(merged.values())

    @staticmethod
    def to_view(booking: Booking, user: User, now: Optional[datetime] = None) -> BookingResponse:
        owner_view = is_venue_owner(booking, user) or (
            user.role == "admin" and str(booking.user_id) != str(user.id)
        )
        view = BookingResponse.model_validate(booking)
        view.effective_status = booking_effective_status(booking, now)
        view.is_owner_view = owner_view
        view.has_pending_changes = has_pending_changes(booking)
        view.can_edit = can_edit(booking, owner_view, now)
        return view

    @staticmethod
    def list_bookings(
            db: Session,
            user: User,
            tab: Optional[BookingStatus] = None,
            event_type: Optional[str] = None,
            venue_id: Optional[UUID] = None,
            only_pending_changes: bool = False,
            sort: Optional[BookingSort] = None,
            now: Optional[datetime] = None,
    ) -> List[BookingResponse]:
        bookings = BookingCRUD.get_user_bookings(db, user.id)

        if tab is not None:
            bookings = [b for b in bookings if booking_effective_status(b, now) == tab]
        if event_type:
            wanted = event_type.strip().lower()
            bookings = [b for b in bookings if (b.event_type or "").strip().lower() == wanted]
        if venue_id:
            bookings = [b for b in bookings if str(b.venue_id) == str(venue_id)]
        if only_pending_changes:
            bookings = [b for b in bookings if is_venue_owner(b, user) and has_pending_changes(b)]

        if sort == BookingSort.newest:
            bookings = sort_newest(bookings)
        elif sort == BookingSort.closest:
            bookings = sort_closest(bookings, now)

        return [BookingCRUD.to_view(b, user, now) for b in bookings]

    @staticmethod
    def summary(
            db: Session,
            user: User,
            unread_by_booking: Optional[Dict[str, int]] = None,
            now: Optional[datetime] = None,
    ) -> BookingSummary:
        """Count bookings per effective status and how many of each need attention"""
        unread_by_booking = unread_by_booking or {}
        counts = {s: 0 for s in BookingStatus}
        attention = {s: 0 for s in BookingStatus}

        for booking in BookingCRUD.get_user_bookings(db, user.id):
            effective = booking_effective_status(booking, now)
            counts[effective] += 1
            awaiting_me = is_venue_owner(booking, user) and has_pending_changes(booking)
            if awaiting_me or unread_by_booking.get(booking.id, 0) > 0:
                attention[effective] += 1

        return BookingSummary(counts=counts, attention=attention)

    @staticmethod
    def calendar(db: Session, user: User, now: Optional[datetime] = None) -> List[CalendarDay]:
        """Pending and confirmed bookings grouped by event date, earliest first"""
        days: Dict[Any, List[BookingResponse]] = {}
        for booking in BookingCRUD.get_user_bookings(db, user.id):
            if booking.event_date is None:
                continue
            if booking_effective_status(booking, now) not in (BookingStatus.pending, BookingStatus.confirmed):
                continue
            days.setdefault(booking.event_date, []).append(BookingCRUD.to_view(booking, user, now))

        return [
            CalendarDay(
                event_date=day,
                bookings=sorted(days[day], key=lambda view: view.start_time or ""),
            )
            for day in sorted(days)
        ]

    @staticmethod
    def apply_update(db: Session, booking: Booking, patch: Dict[str, Any], actor: User) -> Booking:
        """Write a patch through the access policy.

        The patch is sanitised first; ``PolicyViolation`` propagates before
        anything is written, and database failures roll back.
        """
        clean = sanitize_patch(patch)
        if not clean:
            logger.warning(f"Nothing to update on booking {booking.id} after sanitize: {patch}")
            return booking

        enforce_booking_update(
            booking,
            clean,
            actor.id,
            is_venue_owner=is_venue_owner(booking, actor),
            is_admin=actor.role == "admin",
        )

        old = row_to_dict(booking)
        now = datetime.now(timezone.utc)
        try:
            for key, value in clean.items():
                setattr(booking, key, value)
            if "status" in clean:
                booking.status_changed_at = now
                stamp = STATUS_STAMPS.get(clean["status"])
                if stamp:
                    setattr(booking, stamp, now)
            booking.updated_at = now
            db.commit()
            db.refresh(booking)
            logger.debug(f"Booking {booking.id} updated: {sorted(clean)}")

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error updating booking {booking.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while updating booking",
            )

        change_feed.publish("bookings", UPDATE, new=row_to_dict(booking), old=old, actor_id=str(actor.id))
        return booking


booking_crud = BookingCRUD()
