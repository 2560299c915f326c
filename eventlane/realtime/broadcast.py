"""Unread counters mirrored between sessions of the same user."""
import threading
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from eventlane.logger import get_logger
from eventlane.models.message_model import Message
from eventlane.models.venue_model import Venue
from eventlane.realtime.feed import ChangeEvent, ChangeFeed, DELETE, INSERT, UPDATE, change_feed

logger = get_logger(__name__)

UNREAD_CHANNEL = "unread"


class BroadcastHub:
    def __init__(self):
        self._channels: Dict[str, List["BroadcastChannel"]] = {}
        self._lock = threading.Lock()

    def channel(self, name: str) -> "BroadcastChannel":
        channel = BroadcastChannel(name, self)
        with self._lock:
            self._channels.setdefault(name, []).append(channel)
        return channel

    def _deliver(self, sender: "BroadcastChannel", message: Dict[str, Any]) -> None:
        with self._lock:
            peers = [c for c in self._channels.get(sender.name, []) if c is not sender]
        for peer in peers:
            peer._receive(message)

    def _detach(self, channel: "BroadcastChannel") -> None:
        with self._lock:
            members = self._channels.get(channel.name, [])
            if channel in members:
                members.remove(channel)


class BroadcastChannel:
    """A message posted on one channel reaches every other open channel of the same name."""

    def __init__(self, name: str, hub: BroadcastHub):
        self.name = name
        self.hub = hub
        self.closed = False
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    def on_message(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._listeners.append(listener)

    def post_message(self, message: Dict[str, Any]) -> None:
        if not self.closed:
            self.hub._deliver(self, message)

    def _receive(self, message: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"Broadcast listener on {self.name} failed: {str(e)}")

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()
        self.hub._detach(self)


class UnreadStore:
    def __init__(self, user_id: str, feed: ChangeFeed, hub: BroadcastHub):
        self.user_id = str(user_id)
        self.feed = feed
        self.channel = hub.channel(UNREAD_CHANNEL)
        self.messages = 0
        self.by_booking: Dict[str, int] = {}
        self.owned_venue_ids: set = set()
        self.closed = False
        self._subscriptions = []
        self._lock = threading.Lock()

    def open(self, db: Session) -> "UnreadStore":
        self.messages = db.query(Message).filter(
            Message.receiver_id == self.user_id, Message.is_read == False
        ).count()
        self.owned_venue_ids = {
            venue_id for (venue_id,) in db.query(Venue.id).filter(Venue.owner_id == self.user_id).all()
        }
        self._subscriptions = [
            self.feed.subscribe(
                "messages", self._on_message, lambda row: row.get("receiver_id") == self.user_id
            ),
            self.feed.subscribe("bookings", self._on_booking, self._is_my_booking),
            self.feed.subscribe(
                "venues", self._on_venue, lambda row: row.get("owner_id") == self.user_id
            ),
        ]
        logger.info(f"Unread store opened for user {self.user_id} ({self.messages} unread messages)")
        return self

    def _is_my_booking(self, row: Dict[str, Any]) -> bool:
        return row.get("user_id") == self.user_id or row.get("venue_id") in self.owned_venue_ids

    def _on_message(self, event: ChangeEvent) -> None:
        with self._lock:
            if event.event_type == INSERT and not event.row.get("is_read"):
                self.messages += 1
            elif event.event_type == UPDATE:
                was_read = bool((event.old or {}).get("is_read"))
                now_read = bool((event.new or {}).get("is_read"))
                if now_read and not was_read:
                    self.messages = max(0, self.messages - 1)
        self._broadcast()

    def _on_booking(self, event: ChangeEvent) -> None:
        booking_id = event.row.get("id")
        if not booking_id:
            return
        with self._lock:
            if event.event_type == DELETE:
                self.by_booking.pop(booking_id, None)
            elif event.actor_id != self.user_id:
                self.by_booking[booking_id] = self.by_booking.get(booking_id, 0) + 1
        self._broadcast()

    def _on_venue(self, event: ChangeEvent) -> None:
        venue_id = event.row.get("id")
        if venue_id and event.event_type != DELETE:
            self.owned_venue_ids.add(venue_id)

    def mark_booking_read(self, booking_id: str) -> None:
        with self._lock:
            changed = self.by_booking.pop(str(booking_id), None) is not None
        if changed:
            self._broadcast()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "messages": self.messages,
                "bookings": sum(self.by_booking.values()),
                "by_booking": dict(self.by_booking),
            }

    def _broadcast(self) -> None:
        self.channel.post_message({"type": "unread", "user_id": self.user_id, **self.snapshot()})

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        self.channel.close()
        self.closed = True
        logger.info(f"Unread store closed for user {self.user_id}")


class UnreadRegistry:
    """Per-user unread stores: opened at login, closed at logout."""

    def __init__(self, feed: ChangeFeed, hub: BroadcastHub):
        self.feed = feed
        self.hub = hub
        self._stores: Dict[str, UnreadStore] = {}
        self._lock = threading.Lock()

    def open(self, db: Session, user_id: str) -> UnreadStore:
        store = UnreadStore(user_id, self.feed, self.hub).open(db)
        with self._lock:
            previous = self._stores.pop(str(user_id), None)
            self._stores[str(user_id)] = store
        if previous is not None:
            previous.close()
        return store

    def get(self, user_id: str) -> Optional[UnreadStore]:
        with self._lock:
            return self._stores.get(str(user_id))

    def get_or_open(self, db: Session, user_id: str) -> UnreadStore:
        return self.get(user_id) or self.open(db, user_id)

    def close(self, user_id: str) -> None:
        with self._lock:
            store = self._stores.pop(str(user_id), None)
        if store is not None:
            store.close()

    def close_all(self) -> None:
        with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
        for store in stores:
            store.close()


broadcast_hub = BroadcastHub()
unread_registry = UnreadRegistry(change_feed, broadcast_hub)
