from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base
from sqlalchemy.orm import relationship


class BookingChangeRequest(Base):
    __tablename__ = "booking_change_requests"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    booking_id = Column(UUID(as_uuid=False), ForeignKey("bookings.id"), nullable=False, index=True)
    proposed_changes = Column(JSON, nullable=False)
    actor_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=True)
    note = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    booking = relationship("Booking", back_populates="change_requests")
