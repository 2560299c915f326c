from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import UUID
import uuid
from eventlane.database import Base


class TokenBlacklist(Base):
    """Revoked JWT ids; rows are only needed until the token would have expired."""

    __tablename__ = "token_blacklist"

    id = Column(UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    jti = Column(String, unique=True, nullable=False, index=True)
    token_type = Column(String(16), nullable=False, default="access")  # access, refresh
    user_id = Column(UUID(as_uuid=False), nullable=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
