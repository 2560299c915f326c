from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional
from datetime import date, datetime
from eventlane.services.venue_crud import venue_crud
from eventlane.services.availability import check_venue_availability
from eventlane.services.venue_engagement import venue_engagement
from eventlane.schemas.venue_schema import (
    FavoriteStatus,
    OwnerDashboard,
    StatsPeriod,
    VenueCreate,
    VenueQuote,
    VenueResponse,
    VenueUpdate,
    VenueViewCreate,
    VenueViewResult,
)
from eventlane.schemas.booking_schema import AvailabilityResponse
from eventlane.database import get_db
from eventlane.security.auth import get_current_active_user, get_optional_user
from eventlane.models.user_model import User
from eventlane.logger import get_logger

venue_router = APIRouter()
logger = get_logger(__name__)

# PUBLIC ENDPOINTS - Anyone can browse venues


@venue_router.get(
    "/venues", response_model=List[VenueResponse], status_code=status.HTTP_200_OK
)
def get_venues(
    skip: int = Query(0, ge=0, description="Number of venues to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of venues to retrieve"),
    q: Optional[str] = Query(None, description="Search name, description or address"),
    city: Optional[str] = Query(None, description="City filter"),
    venue_type: Optional[str] = Query(None, description="Venue type filter"),
    min_capacity: Optional[int] = Query(None, ge=1, description="Minimum guest capacity"),
    max_rate: Optional[float] = Query(None, ge=0, description="Maximum rate"),
    db: Session = Depends(get_db),
):
    """Browse active venues"""
    try:
        logger.info(f"Fetching venues: skip={skip}, limit={limit}, q={q}, city={city}")
        venues = venue_crud.get_venues(
            db=db, skip=skip, limit=limit, q=q, city=city, venue_type=venue_type,
            min_capacity=min_capacity, max_rate=max_rate,
        )
        return [VenueResponse.model_validate(venue) for venue in venues]

    except Exception as e:
        logger.error(f"Error fetching venues: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching venues",
        )


# OWNER ENDPOINTS

@venue_router.get(
    "/venues/mine", response_model=List[VenueResponse], status_code=status.HTTP_200_OK
)
def get_my_venues(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Venues I own, including deactivated ones"""
    try:
        venues = venue_crud.get_venues_by_owner(db, current_user.id)
        return [VenueResponse.model_validate(venue) for venue in venues]

    except Exception as e:
        logger.error(f"Error fetching venues of {current_user.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching venues",
        )


@venue_router.get(
    "/venues/mine/stats", response_model=OwnerDashboard, status_code=status.HTTP_200_OK
)
def get_my_venue_stats(
    period: StatsPeriod = Query(StatsPeriod.last_7_days, description="today, 7d or 30d"),
    start: Optional[datetime] = Query(None, description="Custom period start; overrides period"),
    end: Optional[datetime] = Query(None, description="Custom period end; overrides period"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Bookings, views, messages and favorites per venue I own, with my next events"""
    try:
        return venue_engagement.owner_dashboard(db, current_user.id, period=period, start=start, end=end)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building venue stats of {current_user.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching venue stats",
        )


@venue_router.get(
    "/venues/favorites", response_model=List[VenueResponse], status_code=status.HTTP_200_OK
)
def get_favorite_venues(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Venues I saved"""
    try:
        venues = venue_engagement.list_favorites(db, current_user.id)
        return [VenueResponse.model_validate(venue) for venue in venues]

    except Exception as e:
        logger.error(f"Error fetching favorites of {current_user.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching favorites",
        )


@venue_router.post(
    "/venues", response_model=VenueResponse, status_code=status.HTTP_201_CREATED
)
def create_venue(
    venue: VenueCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Onboard a new venue"""
    try:
        logger.info(f"User {current_user.email} onboarding venue {venue.name}")
        db_venue = venue_crud.create_venue(db, venue, current_user.id)
        return VenueResponse.model_validate(db_venue)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating venue: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while creating venue",
        )


@venue_router.get(
    "/venues/{venue_id}", response_model=VenueResponse, status_code=status.HTTP_200_OK
)
def get_venue(venue_id: UUID, db: Session = Depends(get_db)):
    try:
        logger.info(f"Fetching venue: {venue_id}")
        venue = venue_crud.get_venue_or_404(db, venue_id, active_only=True)
        return VenueResponse.model_validate(venue)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching venue",
        )


@venue_router.get(
    "/venues/{venue_id}/quote", response_model=VenueQuote, status_code=status.HTTP_200_OK
)
def get_venue_quote(
    venue_id: UUID,
    event_date: date = Query(..., description="Event date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
):
    """Rate and reservation fee for a date"""
    try:
        return venue_crud.quote(db, venue_id, event_date)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error quoting venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while quoting venue",
        )


@venue_router.get(
    "/venues/{venue_id}/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK
)
def get_venue_availability(
    venue_id: UUID,
    event_date: Optional[date] = Query(None, description="Candidate date"),
    start_time: Optional[str] = Query(None, description="HH:MM or HH:MM:SS"),
    end_time: Optional[str] = Query(None, description="HH:MM or HH:MM:SS"),
    exclude_booking_id: Optional[UUID] = Query(None, description="Booking being edited"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Check whether a date and time range is free at the venue"""
    try:
        venue = venue_crud.get_venue_or_404(db, venue_id)
        can_see_others = venue.owner_id == str(current_user.id) or current_user.role == "admin"
        return check_venue_availability(
            db, venue.id, event_date, start_time, end_time,
            exclude_booking_id=exclude_booking_id, can_see_others=can_see_others,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error checking availability of venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while checking availability",
        )


@venue_router.patch(
    "/venues/{venue_id}", response_model=VenueResponse, status_code=status.HTTP_200_OK
)
def update_venue(
    venue_id: UUID,
    venue_update: VenueUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Update a venue I own"""
    try:
        logger.info(f"User {current_user.email} updating venue {venue_id}")
        owner_id = None if current_user.role == "admin" else current_user.id
        db_venue = venue_crud.update_venue(db, venue_id, venue_update, owner_id=owner_id)
        return VenueResponse.model_validate(db_venue)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while updating venue",
        )


@venue_router.delete(
    "/venues/{venue_id}", response_model=VenueResponse, status_code=status.HTTP_200_OK
)
def delete_venue(
    venue_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Deactivate a venue I own"""
    try:
        logger.info(f"User {current_user.email} deleting venue {venue_id}")
        owner_id = None if current_user.role == "admin" else current_user.id
        db_venue = venue_crud.delete_venue(db, venue_id, owner_id=owner_id)
        return VenueResponse.model_validate(db_venue)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while deleting venue",
        )


@venue_router.put(
    "/venues/{venue_id}/favorite", response_model=FavoriteStatus, status_code=status.HTTP_200_OK
)
def add_favorite(
    venue_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        return venue_engagement.add_favorite(db, current_user.id, venue_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error saving favorite {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while saving favorite",
        )


@venue_router.delete(
    "/venues/{venue_id}/favorite", response_model=FavoriteStatus, status_code=status.HTTP_200_OK
)
def remove_favorite(
    venue_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        return venue_engagement.remove_favorite(db, current_user.id, venue_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing favorite {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while removing favorite",
        )


@venue_router.post(
    "/venues/{venue_id}/views", response_model=VenueViewResult, status_code=status.HTTP_200_OK
)
def record_venue_view(
    venue_id: UUID,
    view: VenueViewCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Count a page view; signed-out visitors identify themselves with anon_id"""
    try:
        user_id = current_user.id if current_user else None
        return venue_engagement.record_view(db, venue_id, view, user_id=user_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error recording view of venue {venue_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while recording view",
        )
