from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base
from sqlalchemy.orm import relationship


class BookingActivity(Base):
    __tablename__ = "booking_activity"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    booking_id = Column(UUID(as_uuid=False), ForeignKey("bookings.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # created, edit, status_change, pending_change_*
    details = Column(JSON, nullable=True)
    message = Column(String, nullable=True)
    actor_id = Column(UUID(as_uuid=False), nullable=True)
    at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    booking = relationship("Booking", back_populates="activity")
