from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Text
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    venue_id = Column(UUID(as_uuid=False), ForeignKey("venues.id"), nullable=False, index=True)
    sender_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(UUID(as_uuid=False), ForeignKey("bookings.id"), nullable=True)
    content = Column(Text, nullable=True)
    attachment_url = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    seen_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="sent")  # sent, seen
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
