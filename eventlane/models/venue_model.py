from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Integer, DateTime, Float, JSON
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base
from sqlalchemy.orm import relationship


class Venue(Base):
    __tablename__ = "venues"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    owner_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    venue_type = Column(String, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True, index=True)
    province = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    capacity_max = Column(Integer, nullable=False, default=0)

    # single: one per-event rate; split: weekday/weekend rates
    rate_mode = Column(String, nullable=False, default="single")
    rate = Column(Numeric(12, 2), nullable=False, default=0)
    rate_weekday = Column(Numeric(12, 2), nullable=True)
    rate_weekend = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="PHP")
    reservation_fee_percent = Column(Integer, nullable=False, default=10)

    open_time = Column(String(8), nullable=True)
    close_time = Column(String(8), nullable=True)
    amenities = Column(JSON, nullable=True)
    image_urls = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    owner = relationship("User", back_populates="venues")
    bookings = relationship("Booking", back_populates="venue")
