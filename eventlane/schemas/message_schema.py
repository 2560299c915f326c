from pydantic import BaseModel, Field, model_validator
from typing import Optional
from uuid import UUID
from datetime import datetime


class MessageCreate(BaseModel):
    venue_id: UUID
    receiver_id: UUID
    booking_id: Optional[UUID] = None
    content: Optional[str] = Field(None, max_length=4000)
    attachment_url: Optional[str] = None

    @model_validator(mode="after")
    def content_or_attachment(self):
        if not (self.content or "").strip() and not self.attachment_url:
            raise ValueError("a message needs content or an attachment")
        return self


class MessageResponse(BaseModel):
    id: UUID
    venue_id: UUID
    sender_id: UUID
    receiver_id: UUID
    booking_id: Optional[UUID] = None
    content: Optional[str] = None
    attachment_url: Optional[str] = None
    is_read: bool
    seen_at: Optional[datetime] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    venue_id: UUID
    other_user_id: UUID


class MarkReadResponse(BaseModel):
    updated: int


class ThreadSummary(BaseModel):
    venue_id: UUID
    other_user_id: UUID
    last_message: MessageResponse
    unread: int


class UnreadCounts(BaseModel):
    messages: int
    bookings: int
    by_booking: dict
