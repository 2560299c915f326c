from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from eventlane.utils.booking_fields import normalize_time


class RateMode(str, Enum):
    single = "single"
    split = "split"


class VenueBase(BaseModel):
    name: str = Field(..., min_length=1, example="Casa Verde Garden")
    description: Optional[str] = Field(None, example="Garden venue for intimate weddings")
    venue_type: Optional[str] = Field(None, example="Garden")
    address: str = Field(..., min_length=1, example="12 Mabini St, Tagaytay")
    city: Optional[str] = Field(None, example="Tagaytay")
    province: Optional[str] = Field(None, example="Cavite")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    capacity_max: int = Field(..., ge=1, example=150)
    rate_mode: RateMode = RateMode.single
    rate: Optional[float] = Field(None, ge=0, example=50000)
    rate_weekday: Optional[float] = Field(None, ge=0)
    rate_weekend: Optional[float] = Field(None, ge=0)
    currency: str = Field("PHP", min_length=3, max_length=3)
    open_time: str = Field("08:00", example="08:00")
    close_time: str = Field("22:00", example="22:00")
    amenities: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)


class VenueCreate(VenueBase):
    @field_validator("open_time", "close_time")
    @classmethod
    def times_must_be_clock_values(cls, v):
        normalized = normalize_time(v)
        if normalized is None:
            raise ValueError("time must be HH:MM or HH:MM:SS")
        return normalized

    @model_validator(mode="after")
    def rates_match_mode(self):
        if self.rate_mode == RateMode.split:
            if self.rate_weekday is None or self.rate_weekend is None:
                raise ValueError("split pricing needs both rate_weekday and rate_weekend")
        elif self.rate is None:
            raise ValueError("rate is required for single pricing")
        if self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class VenueUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    venue_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    capacity_max: Optional[int] = Field(None, ge=1)
    rate_mode: Optional[RateMode] = None
    rate: Optional[float] = Field(None, ge=0)
    rate_weekday: Optional[float] = Field(None, ge=0)
    rate_weekend: Optional[float] = Field(None, ge=0)
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    amenities: Optional[List[str]] = None
    image_urls: Optional[List[str]] = None

    @field_validator("open_time", "close_time")
    @classmethod
    def times_must_be_clock_values(cls, v):
        if v is None:
            return v
        normalized = normalize_time(v)
        if normalized is None:
            raise ValueError("time must be HH:MM or HH:MM:SS")
        return normalized


class VenueResponse(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    description: Optional[str] = None
    venue_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    capacity_max: int
    rate_mode: RateMode
    rate: float
    rate_weekday: Optional[float] = None
    rate_weekend: Optional[float] = None
    currency: str
    reservation_fee_percent: int
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    amenities: Optional[List[str]] = None
    image_urls: Optional[List[str]] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class VenueQuote(BaseModel):
    venue_id: UUID
    event_date: date
    rate: float
    reservation_fee: float
    currency: str


class FavoriteStatus(BaseModel):
    venue_id: UUID
    is_favorite: bool


class VenueViewCreate(BaseModel):
    anon_id: Optional[str] = Field(None, max_length=64, description="Browser id of a signed-out visitor")
    viewed_on: str = Field("details", max_length=20, example="details")


class VenueViewResult(BaseModel):
    venue_id: UUID
    recorded: bool  # False when this viewer already counted today


class StatsPeriod(str, Enum):
    today = "today"
    last_7_days = "7d"
    last_30_days = "30d"


class VenueStats(BaseModel):
    venue_id: UUID
    name: str
    is_active: bool
    bookings: int = 0
    views: int = 0
    messages: int = 0
    favorites: int = 0
    conversion: Optional[float] = None  # bookings per view; None without views


class VenueStatsTotals(BaseModel):
    bookings: int = 0
    views: int = 0
    messages: int = 0
    favorites: int = 0


class UpcomingEvent(BaseModel):
    booking_id: UUID
    venue_id: UUID
    venue_name: str
    event_name: Optional[str] = None
    event_date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    guest_count: Optional[int] = None
    status: str


class OwnerDashboard(BaseModel):
    period_start: datetime
    period_end: datetime
    totals: VenueStatsTotals
    venues: List[VenueStats]
    upcoming: List[UpcomingEvent]
