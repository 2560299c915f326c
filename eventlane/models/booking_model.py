from datetime import datetime, timezone
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Integer, Numeric, Boolean, JSON
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base
from sqlalchemy.orm import relationship


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
    venue_id = Column(UUID(as_uuid=False), ForeignKey("venues.id"), nullable=False, index=True)

    event_name = Column(String, nullable=False)
    event_type = Column(String, nullable=True)
    event_date = Column(Date, nullable=True, index=True)
    guest_count = Column(Integer, nullable=True)
    # "HH:MM:SS"
    start_time = Column(String(8), nullable=True)
    end_time = Column(String(8), nullable=True)
    event_start_at = Column(DateTime(timezone=True), nullable=True)
    event_end_at = Column(DateTime(timezone=True), nullable=True)

    venue_rate = Column(Numeric(12, 2), nullable=True)
    reservation_fee = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)
    needs_owner_approval = Column(Boolean, nullable=False, default=False)
    pending_changes = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="bookings")
    venue = relationship("Venue", back_populates="bookings")
    activity = relationship("BookingActivity", back_populates="booking", order_by="BookingActivity.at.desc()")
    change_requests = relationship("BookingChangeRequest", back_populates="booking")
