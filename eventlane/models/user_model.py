from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base
from sqlalchemy.orm import relationship


class User(Base):
    """An Eventlane account: books venues as a guest and lists venues as an owner."""

    __tablename__ = "users"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(String, nullable=False, default="active")  # login state: active, inactive
    role = Column(String, nullable=False, default="user")  # user, admin
    is_active = Column(Boolean, nullable=False, default=True)  # False once deactivated
    avatar_url = Column(String, nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    venues = relationship("Venue", back_populates="owner")
    bookings = relationship("Booking", back_populates="user")
