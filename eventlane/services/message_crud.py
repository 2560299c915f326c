from datetime import datetime, timezone
from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from eventlane import config
from eventlane.logger import get_logger
from eventlane.models.booking_model import Booking
from eventlane.models.message_model import Message
from eventlane.models.user_model import User
from eventlane.models.venue_model import Venue
from eventlane.realtime.feed import INSERT, UPDATE, change_feed, row_to_dict
from eventlane.schemas.message_schema import MessageCreate, MessageResponse, ThreadSummary

logger = get_logger(__name__)


def _between(user_id: str, other_id: str):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == other_id),
        and_(Message.sender_id == other_id, Message.receiver_id == user_id),
    )


class MessageCRUD:
    @staticmethod
    def send_message(db: Session, message: MessageCreate, sender: User) -> Message:
        receiver_id = str(message.receiver_id)
        if receiver_id == str(sender.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot message yourself."
            )
        if not db.query(User).filter(User.id == receiver_id, User.is_active == True).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")
        if not db.query(Venue).filter(Venue.id == str(message.venue_id)).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Venue not found")
        if message.booking_id is not None:
            booking = db.query(Booking).filter(Booking.id == str(message.booking_id)).first()
            if not booking or booking.venue_id != str(message.venue_id):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found for this venue")

        try:
            db_message = Message(
                venue_id=str(message.venue_id),
                sender_id=str(sender.id),
                receiver_id=receiver_id,
                booking_id=str(message.booking_id) if message.booking_id else None,
                content=(message.content or "").strip() or None,
                attachment_url=message.attachment_url,
                status="sent",
            )
            db.add(db_message)
            db.commit()
            db.refresh(db_message)
            logger.info(f"Message {db_message.id} sent from {sender.id} to {receiver_id}")

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error sending message: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while sending message"
            )

        change_feed.publish("messages", INSERT, new=row_to_dict(db_message), actor_id=str(sender.id))
        return db_message

    @staticmethod
    def get_conversation(
            db: Session,
            user: User,
            venue_id: UUID,
            other_user_id: UUID,
            before: Optional[datetime] = None,
            limit: Optional[int] = None,
    ) -> List[Message]:
        """One page of a conversation, oldest first; opening it marks the page as seen"""
        query = db.query(Message).filter(
            Message.venue_id == str(venue_id),
            _between(str(user.id), str(other_user_id)),
        )
        if before is not None:
            query = query.filter(Message.created_at < before)

        page = query.order_by(Message.created_at.desc()).limit(limit or config.MESSAGE_PAGE_SIZE).all()
        MessageCRUD.mark_read(db, user, venue_id, other_user_id)
        return list(reversed(page))

    @staticmethod
    def mark_read(db: Session, user: User, venue_id: UUID, other_user_id: UUID) -> int:
        unread = db.query(Message).filter(
            Message.venue_id == str(venue_id),
            Message.sender_id == str(other_user_id),
            Message.receiver_id == str(user.id),
            Message.is_read == False,
        ).all()
        if not unread:
            return 0

        now = datetime.now(timezone.utc)
        before = [row_to_dict(m) for m in unread]
        try:
            for m in unread:
                m.is_read = True
                m.seen_at = now
                m.status = "seen"
            db.commit()

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error marking messages read for {user.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error occurred while updating messages"
            )

        for old, m in zip(before, unread):
            change_feed.publish("messages", UPDATE, new=row_to_dict(m), old=old, actor_id=str(user.id))
        logger.info(f"Marked {len(unread)} messages read for user {user.id}")
        return len(unread)

    @staticmethod
    def list_threads(db: Session, user: User) -> List[ThreadSummary]:
        """Latest message and unread count per (venue, counterpart), most recent thread first"""
        user_id = str(user.id)
        messages = (
            db.query(Message)
            .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
            .all()
        )

        threads: Dict[Tuple[str, str], ThreadSummary] = {}
        for m in messages:
            other = m.receiver_id if m.sender_id == user_id else m.sender_id
            key = (m.venue_id, other)
            if key not in threads:
                threads[key] = ThreadSummary(
                    venue_id=m.venue_id,
                    other_user_id=other,
                    last_message=MessageResponse.model_validate(m),
                    unread=0,
                )
            if m.receiver_id == user_id and not m.is_read:
                threads[key].unread += 1
        return list(threads.values())


message_crud = MessageCRUD()
