"""Websocket stream of a user's booking views and unread counters."""
import asyncio
from typing import Any, Dict, Optional
from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from eventlane.database import SessionLocal
from eventlane.logger import get_logger
from eventlane.models.user_model import User
from eventlane.realtime.broadcast import UNREAD_CHANNEL, broadcast_hub, unread_registry
from eventlane.realtime.feed import DELETE, ChangeEvent, change_feed
from eventlane.realtime.reconciler import BookingReconciler
from eventlane.security.auth import user_from_token
from eventlane.services.booking_crud import booking_crud
from eventlane.services.venue_crud import venue_crud

realtime_router = APIRouter()
logger = get_logger(__name__)


def load_booking_view(booking_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        try:
            booking = booking_crud.get_visible_booking(db, booking_id, user)
        except HTTPException:
            return None
        return booking_crud.to_view(booking, user).model_dump(mode="json")
    finally:
        db.close()


@realtime_router.websocket("/ws/bookings")
async def booking_updates(websocket: WebSocket, token: str = Query(...)):
    db = SessionLocal()
    try:
        user = user_from_token(token, db)
        user_id = str(user.id)
        owned = set(venue_crud.owned_venue_ids(db, user.id))
        initial = [view.model_dump(mode="json") for view in booking_crud.list_bookings(db, user)]
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    async def fetch(booking_id: str):
        return await run_in_threadpool(load_booking_view, booking_id, user_id)

    reconciler = BookingReconciler(fetch=fetch)
    reconciler.load(initial)

    # Feed callbacks run on the committing thread; reconciliation stays on this loop
    def on_booking(event: ChangeEvent) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("booking", event))

    def on_unread(message: Dict[str, Any]) -> None:
        if message.get("user_id") == user_id:
            loop.call_soon_threadsafe(queue.put_nowait, ("unread", message))

    subscription = change_feed.subscribe(
        "bookings", on_booking, lambda row: row.get("user_id") == user_id or row.get("venue_id") in owned
    )
    channel = broadcast_hub.channel(UNREAD_CHANNEL)
    channel.on_message(on_unread)

    async def pump():
        while True:
            kind, item = await queue.get()
            if kind == "unread":
                await websocket.send_json(item)
                continue
            booking_id = reconciler.apply_event(item)
            if booking_id is None:
                continue
            if item.event_type == DELETE:
                await websocket.send_json({"type": "booking_deleted", "id": booking_id})
                continue
            row = await reconciler.hydrate(booking_id)
            if row is not None:
                await websocket.send_json({"type": "booking", "booking": row})

    await websocket.send_json({"type": "snapshot", "bookings": reconciler.rows})
    store = unread_registry.get(user_id)
    if store is not None:
        await websocket.send_json({"type": "unread", "user_id": user_id, **store.snapshot()})

    pump_task = asyncio.create_task(pump())
    logger.info(f"Booking stream opened for user {user_id}")
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        reconciler.close()
        subscription.unsubscribe()
        channel.close()
        pump_task.cancel()
        logger.info(f"Booking stream closed for user {user_id}")
