from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime, timezone
from eventlane import config
from eventlane.models.venue_model import Venue
from eventlane.realtime.feed import INSERT, UPDATE, change_feed, row_to_dict
from eventlane.schemas.venue_schema import RateMode, VenueCreate, VenueQuote, VenueUpdate
from eventlane.logger import get_logger

logger = get_logger(__name__)


def applicable_rate(venue: Venue, event_date: Optional[date]) -> float:
    """Split-priced venues charge the weekend rate on Saturdays and Sundays."""
    if venue.rate_mode == RateMode.split.value and event_date is not None:
        weekend = event_date.weekday() >= 5
        chosen = venue.rate_weekend if weekend else venue.rate_weekday
        if chosen is not None:
            return float(chosen)
    return float(venue.rate or 0)


def reservation_fee(rate: float, percent: Optional[int] = None) -> float:
    percent = config.RESERVATION_FEE_PERCENT if percent is None else percent
    return float(round(rate * percent / 100))


class VenueCRUD:
    @staticmethod
    def create_venue(db: Session, venue: VenueCreate, owner_id: UUID) -> Venue:
        """Onboard a venue; the creator becomes its owner"""
        try:
            data = venue.model_dump()
            data["rate_mode"] = venue.rate_mode.value
            if venue.rate_mode == RateMode.split:
                data["rate"] = venue.rate_weekday
            db_venue = Venue(
                **data,
                owner_id=str(owner_id),
                reservation_fee_percent=config.RESERVATION_FEE_PERCENT,
            )
            db.add(db_venue)
            db.commit()
            db.refresh(db_venue)
            logger.info(f"Venue created: {venue.name} by owner {owner_id}")
            change_feed.publish("venues", INSERT, new=row_to_dict(db_venue), actor_id=str(owner_id))
            return db_venue

        except Exception as e:
            db.rollback()
            logger.error(f"Error creating venue: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while creating venue"
            )

    @staticmethod
    def get_venue_by_id(db: Session, venue_id: UUID) -> Optional[Venue]:
        return db.query(Venue).filter(Venue.id == str(venue_id)).first()

    @staticmethod
    def get_venue_or_404(db: Session, venue_id: UUID, active_only: bool = False) -> Venue:
        venue = VenueCRUD.get_venue_by_id(db, venue_id)
        if not venue or (active_only and not venue.is_active):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Venue not found"
            )
        return venue

    @staticmethod
    def get_venues(
            db: Session,
            skip: int = 0,
            limit: int = 100,
            q: Optional[str] = None,
            city: Optional[str] = None,
            venue_type: Optional[str] = None,
            min_capacity: Optional[int] = None,
            max_rate: Optional[float] = None,
            active: Optional[bool] = True,
            owner_id: Optional[UUID] = None
    ) -> List[Venue]:
        """Browse venues with optional filtering"""
        query = db.query(Venue)

        # Search name, description or address
        if q:
            query = query.filter(
                or_(
                    Venue.name.ilike(f"%{q}%"),
                    Venue.description.ilike(f"%{q}%"),
                    Venue.address.ilike(f"%{q}%")
                )
            )

        if city:
            query = query.filter(Venue.city.ilike(city))
        if venue_type:
            query = query.filter(Venue.venue_type.ilike(venue_type))
        if min_capacity is not None:
            query = query.filter(Venue.capacity_max >= min_capacity)
        if max_rate is not None:
            query = query.filter(Venue.rate <= max_rate)

        if active is not None:
            query = query.filter(Venue.is_active == active)
        if owner_id:
            query = query.filter(Venue.owner_id == str(owner_id))

        return query.order_by(Venue.created_at.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def get_venues_by_owner(db: Session, owner_id: UUID, skip: int = 0, limit: int = 100) -> List[Venue]:
        """All venues owned by a user, including deactivated ones"""
        return VenueCRUD.get_venues(db, skip=skip, limit=limit, active=None, owner_id=owner_id)

    @staticmethod
    def owned_venue_ids(db: Session, owner_id: UUID) -> List[str]:
        return [venue_id for (venue_id,) in db.query(Venue.id).filter(Venue.owner_id == str(owner_id)).all()]

    @staticmethod
    def _check_owner(db_venue: Venue, owner_id: Optional[UUID], action: str) -> None:
        if owner_id and db_venue.owner_id != str(owner_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Not authorized to {action} this venue"
            )

    @staticmethod
    def update_venue(db: Session, venue_id: UUID, venue_update: VenueUpdate,
                     owner_id: Optional[UUID] = None) -> Venue:
        db_venue = VenueCRUD.get_venue_or_404(db, venue_id)
        VenueCRUD._check_owner(db_venue, owner_id, "update")

        changes = venue_update.model_dump(exclude_unset=True)
        if "rate_mode" in changes and changes["rate_mode"] is not None:
            changes["rate_mode"] = changes["rate_mode"].value

        rate_mode = changes.get("rate_mode") or db_venue.rate_mode
        if rate_mode == RateMode.split.value:
            weekday = changes.get("rate_weekday", db_venue.rate_weekday)
            weekend = changes.get("rate_weekend", db_venue.rate_weekend)
            if weekday is None or weekend is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Split pricing needs both a weekday and a weekend rate"
                )
            changes["rate"] = weekday

        open_time = changes.get("open_time") or db_venue.open_time
        close_time = changes.get("close_time") or db_venue.close_time
        if open_time and close_time and open_time >= close_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Opening time must be before closing time"
            )

        try:
            for key, value in changes.items():
                if value is not None:
                    setattr(db_venue, key, value)

            db.commit()
            db.refresh(db_venue)
            logger.info(f"Venue updated: {venue_id}")
            change_feed.publish("venues", UPDATE, new=row_to_dict(db_venue), actor_id=str(owner_id) if owner_id else None)
            return db_venue

        except Exception as e:
            db.rollback()
            logger.error(f"Error updating venue {venue_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while updating venue"
            )

    @staticmethod
    def delete_venue(db: Session, venue_id: UUID, owner_id: Optional[UUID] = None) -> Venue:
        # Soft delete: the venue disappears from browse but its bookings stay intact
        db_venue = VenueCRUD.get_venue_or_404(db, venue_id)
        VenueCRUD._check_owner(db_venue, owner_id, "delete")

        try:
            db_venue.is_active = False
            db_venue.updated_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(db_venue)
            logger.info(f"Venue deactivated: {venue_id}")
            return db_venue

        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting venue {venue_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while deleting venue"
            )

    @staticmethod
    def quote(db: Session, venue_id: UUID, event_date: date) -> VenueQuote:
        venue = VenueCRUD.get_venue_or_404(db, venue_id, active_only=True)
        rate = applicable_rate(venue, event_date)
        return VenueQuote(
            venue_id=venue.id,
            event_date=event_date,
            rate=rate,
            reservation_fee=reservation_fee(rate, venue.reservation_fee_percent),
            currency=venue.currency or config.DEFAULT_CURRENCY,
        )


venue_crud = VenueCRUD()
