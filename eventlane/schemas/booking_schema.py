from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import date, datetime
from enum import Enum
from eventlane.utils.booking_fields import normalize_time


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"


class ChangeRecordedVia(str, Enum):
    direct = "direct"
    procedure = "procedure"
    activity_only = "activity_only"


class BookingSort(str, Enum):
    newest = "newest"
    closest = "closest"


def _validate_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = normalize_time(value)
    if normalized is None:
        raise ValueError("time must be HH:MM or HH:MM:SS")
    return normalized


class BookingCreate(BaseModel):
    venue_id: UUID = Field(..., description="ID of the venue being booked")
    event_name: str = Field(..., min_length=1, example="Santos Wedding Reception")
    event_type: str = Field(..., min_length=1, example="Wedding")
    event_date: date = Field(..., description="Event date (YYYY-MM-DD)")
    start_time: str = Field(..., example="14:00")
    end_time: str = Field(..., example="18:00")
    guest_count: int = Field(..., description="Expected number of guests")

    @field_validator("event_name", "event_type")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def times_must_be_clock_values(cls, v):
        return _validate_time(v)


class BookingFieldEdit(BaseModel):
    """Single-field edits; only the fields that are set are applied."""

    event_name: Optional[str] = Field(None, min_length=1)
    event_type: Optional[str] = Field(None, min_length=1)
    event_date: Optional[date] = None
    guest_count: Optional[int] = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_dump(exclude_unset=True):
            raise ValueError("at least one field must be provided")
        return self


class TimeRangeUpdate(BaseModel):
    start_time: str = Field(..., example="15:00")
    end_time: str = Field(..., example="19:00")

    @field_validator("start_time", "end_time")
    @classmethod
    def times_must_be_clock_values(cls, v):
        return _validate_time(v)


class ConfirmRequest(BaseModel):
    start_time: Optional[str] = Field(None, description="Required when the booking has no start time yet")
    end_time: Optional[str] = Field(None, description="Required when the booking has no end time yet")

    @field_validator("start_time", "end_time")
    @classmethod
    def times_must_be_clock_values(cls, v):
        return _validate_time(v)


class VenueBrief(BaseModel):
    id: UUID
    name: str
    owner_id: UUID
    capacity_max: int
    currency: str

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    venue_id: UUID
    event_name: str
    event_type: Optional[str] = None
    event_date: Optional[date] = None
    guest_count: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    event_start_at: Optional[datetime] = None
    event_end_at: Optional[datetime] = None
    venue_rate: Optional[float] = None
    reservation_fee: Optional[float] = None
    currency: Optional[str] = None
    status: BookingStatus
    effective_status: Optional[BookingStatus] = None
    needs_owner_approval: bool = False
    pending_changes: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    venue: Optional[VenueBrief] = None

    # Viewer-relative flags
    is_owner_view: bool = False
    has_pending_changes: bool = False
    can_edit: bool = False

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    ok: bool
    reason: Optional[str] = None
    warning: Optional[str] = None


class BookingSummary(BaseModel):
    counts: Dict[BookingStatus, int]
    attention: Dict[BookingStatus, int]


class CalendarDay(BaseModel):
    event_date: date
    bookings: List[BookingResponse]


class ActivityEntry(BaseModel):
    id: Optional[str] = None
    booking_id: Optional[UUID] = None
    type: str
    at: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    actor_id: Optional[UUID] = None
    derived: bool = False

    class Config:
        from_attributes = True


class BookingEditResponse(BaseModel):
    booking: BookingResponse
    applied: bool = Field(..., description="False when the edit awaits venue owner approval")
    recorded_via: Optional[ChangeRecordedVia] = None
    message: str = "Booking updated."
