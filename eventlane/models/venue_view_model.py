from datetime import datetime, timezone
from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base


class VenueView(Base):
    """One row per viewer, venue and calendar day."""

    __tablename__ = "venue_views"
    __table_args__ = (
        UniqueConstraint("venue_id", "user_id", "view_date", name="uq_venue_views_user_day"),
        UniqueConstraint("venue_id", "anon_id", "view_date", name="uq_venue_views_anon_day"),
    )

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    venue_id = Column(UUID(as_uuid=False), ForeignKey("venues.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=False), ForeignKey("users.id"), nullable=True)
    anon_id = Column(String(64), nullable=True)  # set for signed-out visitors
    view_date = Column(Date, nullable=False)
    viewed_on = Column(String, nullable=False, default="details")  # details, card, map
    viewed_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
