from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional
from datetime import datetime
from eventlane.services.message_crud import message_crud
from eventlane.schemas.message_schema import (
    MarkReadRequest,
    MarkReadResponse,
    MessageCreate,
    MessageResponse,
    ThreadSummary,
    UnreadCounts,
)
from eventlane.database import get_db
from eventlane.realtime.broadcast import unread_registry
from eventlane.security.auth import get_current_active_user
from eventlane.models.user_model import User
from eventlane.logger import get_logger

message_router = APIRouter()
logger = get_logger(__name__)


@message_router.post(
    "/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED
)
def send_message(
    message: MessageCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        logger.info(f"User {current_user.email} messaging {message.receiver_id} about venue {message.venue_id}")
        db_message = message_crud.send_message(db, message, current_user)
        return MessageResponse.model_validate(db_message)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending message: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while sending message",
        )


@message_router.get(
    "/messages/threads", response_model=List[ThreadSummary], status_code=status.HTTP_200_OK
)
def list_threads(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Inbox: one entry per venue and counterpart"""
    try:
        return message_crud.list_threads(db, current_user)

    except Exception as e:
        logger.error(f"Error listing threads for {current_user.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching conversations",
        )


@message_router.get(
    "/messages/unread", response_model=UnreadCounts, status_code=status.HTTP_200_OK
)
def unread_counts(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        store = unread_registry.get_or_open(db, current_user.id)
        return UnreadCounts(**store.snapshot())

    except Exception as e:
        logger.error(f"Error reading unread counts for {current_user.email}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while fetching unread counts",
        )


@message_router.post(
    "/messages/read", response_model=MarkReadResponse, status_code=status.HTTP_200_OK
)
def mark_read(
    request: MarkReadRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    try:
        updated = message_crud.mark_read(db, current_user, request.venue_id, request.other_user_id)
        return MarkReadResponse(updated=updated)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error marking messages read: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while updating messages",
        )


@message_router.get(
    "/messages/{venue_id}/{other_user_id}", response_model=List[MessageResponse], status_code=status.HTTP_200_OK
)
def get_conversation(
    venue_id: UUID,
    other_user_id: UUID,
    before: Optional[datetime] = Query(None, description="Load messages older than this"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """A page of a conversation, oldest first"""
    try:
        messages = message_crud.get_conversation(db, current_user, venue_id, other_user_id, before=before)
        return [MessageResponse.model_validate(m) for m in messages]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading conversation: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error occurred while loading conversation",
        )
