"""In-process change feed for table rows."""
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from eventlane.logger import get_logger
from eventlane.utils.booking_fields import to_json_value

logger = get_logger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass
class ChangeEvent:
    table: str
    event_type: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    actor_id: Optional[str] = None

    @property
    def row(self) -> Dict[str, Any]:
        return self.new or self.old or {}


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, callback, predicate=None):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.predicate = predicate

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.predicate is None or bool(self.predicate(event.row))

    def unsubscribe(self) -> None:
        self.feed.remove(self)


class ChangeFeed:
    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> Subscription:
        subscription = Subscription(self, table, callback, predicate)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(
        self,
        table: str,
        event_type: str,
        new: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
    ) -> ChangeEvent:
        event = ChangeEvent(table=table, event_type=event_type, new=new, old=old, actor_id=actor_id)
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception as e:
                logger.warning(f"Change feed subscriber failed on {table} {event_type}: {str(e)}")
        return event


def row_to_dict(obj) -> Dict[str, Any]:
    """Snapshot an ORM row as JSON-ready column values."""
    return {column.name: to_json_value(getattr(obj, column.name)) for column in obj.__table__.columns}


change_feed = ChangeFeed()
