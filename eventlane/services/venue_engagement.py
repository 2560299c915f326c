from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from eventlane import config
from eventlane.logger import get_logger
from eventlane.models.booking_model import Booking
from eventlane.models.favorite_model import Favorite
from eventlane.models.message_model import Message
from eventlane.models.venue_model import Venue
from eventlane.models.venue_view_model import VenueView
from eventlane.schemas.venue_schema import (
    FavoriteStatus,
    OwnerDashboard,
    StatsPeriod,
    UpcomingEvent,
    VenueStats,
    VenueStatsTotals,
    VenueViewCreate,
    VenueViewResult,
)
from eventlane.services.venue_crud import venue_crud
from eventlane.utils.booking_fields import as_utc, local_today, local_tz, utc_now

logger = get_logger(__name__)

# Only bookings that went through count towards a venue's bookings
COUNTED_BOOKING_STATUSES = ("confirmed", "completed")


def period_bounds(period: StatsPeriod, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    now = as_utc(now) if now is not None else utc_now()
    if period == StatsPeriod.today:
        midnight = datetime.combine(local_today(now), time.min, tzinfo=local_tz())
        return midnight.astimezone(timezone.utc), now
    days = 29 if period == StatsPeriod.last_30_days else 6
    return now - timedelta(days=days), now


def _count_by_venue(db: Session, model, stamp, venue_ids: List[str], start: datetime, end: datetime,
                    *criteria) -> Dict[str, int]:
    rows = (
        db.query(model.venue_id, func.count(model.id))
        .filter(model.venue_id.in_(venue_ids), stamp >= start, stamp <= end, *criteria)
        .group_by(model.venue_id)
        .all()
    )
    return {venue_id: count for venue_id, count in rows}


class VenueEngagementCRUD:
    @staticmethod
    def is_favorite(db: Session, user_id: UUID, venue_id: UUID) -> bool:
        return db.query(Favorite).filter(
            Favorite.user_id == str(user_id),
            Favorite.venue_id == str(venue_id),
        ).first() is not None

    @staticmethod
    def add_favorite(db: Session, user_id: UUID, venue_id: UUID) -> FavoriteStatus:
        """Save a venue to the user's favorites; saving it twice keeps one entry"""
        venue = venue_crud.get_venue_or_404(db, venue_id, active_only=True)
        if VenueEngagementCRUD.is_favorite(db, user_id, venue.id):
            return FavoriteStatus(venue_id=venue.id, is_favorite=True)

        try:
            db.add(Favorite(user_id=str(user_id), venue_id=venue.id))
            db.commit()
            logger.info(f"Venue {venue.id} favorited by {user_id}")
        except IntegrityError:
            # Saved concurrently from another tab
            db.rollback()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error saving favorite {venue.id} for {user_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while saving favorite",
            )
        return FavoriteStatus(venue_id=venue.id, is_favorite=True)

    @staticmethod
    def remove_favorite(db: Session, user_id: UUID, venue_id: UUID) -> FavoriteStatus:
        venue = venue_crud.get_venue_or_404(db, venue_id)
        try:
            removed = db.query(Favorite).filter(
                Favorite.user_id == str(user_id),
                Favorite.venue_id == venue.id,
            ).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error removing favorite {venue.id} for {user_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while removing favorite",
            )
        if removed:
            logger.info(f"Venue {venue.id} unfavorited by {user_id}")
        return FavoriteStatus(venue_id=venue.id, is_favorite=False)

    @staticmethod
    def list_favorites(db: Session, user_id: UUID) -> List[Venue]:
        """Active venues the user saved, most recently saved first"""
        return (
            db.query(Venue)
            .join(Favorite, Favorite.venue_id == Venue.id)
            .filter(Favorite.user_id == str(user_id), Venue.is_active == True)
            .order_by(Favorite.created_at.desc())
            .all()
        )

    @staticmethod
    def record_view(db: Session, venue_id: UUID, view: VenueViewCreate, user_id: Optional[UUID] = None,
                    now: Optional[datetime] = None) -> VenueViewResult:
        """Count a venue page view once per viewer per day; repeats are ignored"""
        venue = venue_crud.get_venue_or_404(db, venue_id, active_only=True)
        if user_id is None and not view.anon_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Signed-out views need an anon_id",
            )

        now = as_utc(now) if now is not None else utc_now()
        try:
            db.add(VenueView(
                venue_id=venue.id,
                user_id=str(user_id) if user_id else None,
                anon_id=None if user_id else view.anon_id,
                view_date=local_today(now),
                viewed_on=view.viewed_on,
                viewed_at=now,
            ))
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Duplicate daily view of venue {venue.id}, ignoring")
            return VenueViewResult(venue_id=venue.id, recorded=False)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error recording view of venue {venue.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while recording view",
            )
        return VenueViewResult(venue_id=venue.id, recorded=True)

    @staticmethod
    def owner_dashboard(
            db: Session,
            owner_id: UUID,
            period: StatsPeriod = StatsPeriod.last_7_days,
            start: Optional[datetime] = None,
            end: Optional[datetime] = None,
            now: Optional[datetime] = None,
    ) -> OwnerDashboard:
        """Per-venue bookings, views, messages and favorites in a period, plus the next events"""
        default_start, default_end = period_bounds(period, now)
        start = as_utc(start) if start else default_start
        end = as_utc(end) if end else default_end
        if start > end:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The period must start before it ends",
            )

        venues = db.query(Venue).filter(Venue.owner_id == str(owner_id)).order_by(Venue.updated_at.desc()).all()
        venue_ids = [venue.id for venue in venues]
        if not venue_ids:
            return OwnerDashboard(period_start=start, period_end=end, totals=VenueStatsTotals(), venues=[], upcoming=[])

        bookings = _count_by_venue(
            db, Booking, Booking.created_at, venue_ids, start, end, Booking.status.in_(COUNTED_BOOKING_STATUSES)
        )
        views = _count_by_venue(db, VenueView, VenueView.viewed_at, venue_ids, start, end)
        messages = _count_by_venue(db, Message, Message.created_at, venue_ids, start, end)
        favorites = _count_by_venue(db, Favorite, Favorite.created_at, venue_ids, start, end)

        rows = []
        for venue in venues:
            booked, viewed = bookings.get(venue.id, 0), views.get(venue.id, 0)
            rows.append(VenueStats(
                venue_id=venue.id,
                name=venue.name,
                is_active=bool(venue.is_active),
                bookings=booked,
                views=viewed,
                messages=messages.get(venue.id, 0),
                favorites=favorites.get(venue.id, 0),
                conversion=booked / viewed if viewed else None,
            ))

        totals = VenueStatsTotals(
            bookings=sum(row.bookings for row in rows),
            views=sum(row.views for row in rows),
            messages=sum(row.messages for row in rows),
            favorites=sum(row.favorites for row in rows),
        )
        names = {venue.id: venue.name for venue in venues}
        upcoming = [
            UpcomingEvent(
                booking_id=booking.id,
                venue_id=booking.venue_id,
                venue_name=names.get(booking.venue_id) or "Unnamed venue",
                event_name=booking.event_name,
                event_date=booking.event_date,
                start_time=booking.start_time,
                end_time=booking.end_time,
                guest_count=booking.guest_count,
                status=booking.status,
            )
            for booking in (
                db.query(Booking)
                .filter(
                    Booking.venue_id.in_(venue_ids),
                    Booking.event_date >= local_today(now),
                    Booking.status.notin_(["cancelled", "completed"]),
                )
                .order_by(Booking.event_date.asc(), Booking.start_time.asc())
                .limit(config.DASHBOARD_UPCOMING_LIMIT)
                .all()
            )
        ]
        return OwnerDashboard(period_start=start, period_end=end, totals=totals, venues=rows, upcoming=upcoming)


venue_engagement = VenueEngagementCRUD()
