"""Booking rows kept consistent with realtime pushes, versioned by updated_at."""
import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from sqlalchemy.exc import OperationalError, DisconnectionError
from eventlane import config
from eventlane.logger import get_logger
from eventlane.realtime.feed import ChangeEvent, DELETE
from eventlane.utils.booking_fields import as_utc

logger = get_logger(__name__)

NETWORK_ERRORS = (OperationalError, DisconnectionError, ConnectionError, TimeoutError)

Fetcher = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]


def _version(row: Dict[str, Any]) -> Optional[datetime]:
    raw = row.get("updated_at") or row.get("created_at")
    if isinstance(raw, datetime):
        return as_utc(raw)
    if not raw:
        return None
    try:
        return as_utc(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))
    except ValueError:
        return None


def is_not_older(incoming: Dict[str, Any], current: Dict[str, Any]) -> bool:
    incoming_version = _version(incoming)
    current_version = _version(current)
    if current_version is None:
        return True
    if incoming_version is None:
        return False
    return incoming_version >= current_version


class BookingReconciler:
    def __init__(
        self,
        fetch: Optional[Fetcher] = None,
        max_attempts: int = config.HYDRATE_MAX_ATTEMPTS,
        base_delay: float = config.HYDRATE_BASE_DELAY_SECONDS,
    ):
        self._fetch = fetch
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._rows: Dict[str, Dict[str, Any]] = {}
        self.alive = True

    def get(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return self._rows.get(str(booking_id))

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return sorted(
            self._rows.values(), key=lambda row: str(row.get("created_at") or ""), reverse=True
        )

    def load(self, rows: List[Dict[str, Any]]) -> None:
        self._rows = {str(row["id"]): dict(row) for row in rows}

    def merge(self, row: Dict[str, Any]) -> bool:
        """Apply an authoritative row; returns False when the local row is newer."""
        if not self.alive:
            return False
        booking_id = str(row["id"])
        current = self._rows.get(booking_id)
        if current is not None and not is_not_older(row, current):
            logger.debug(f"Ignoring stale row for booking {booking_id}")
            return False
        merged = {**(current or {}), **row}
        merged.pop("_optimistic", None)
        self._rows[booking_id] = merged
        return True

    def apply_optimistic(self, booking_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Patch locally, keeping the row version so the authoritative row of the same write replaces it."""
        current = self._rows.get(str(booking_id))
        if current is None:
            return None
        patch = {key: value for key, value in patch.items() if key not in ("updated_at", "id")}
        self._rows[str(booking_id)] = {**current, **patch, "_optimistic": True}
        return self._rows[str(booking_id)]

    def remove(self, booking_id: str) -> None:
        self._rows.pop(str(booking_id), None)

    def apply_event(self, event: ChangeEvent) -> Optional[str]:
        booking_id = event.row.get("id")
        if not booking_id or not self.alive:
            return None
        if event.event_type == DELETE:
            self.remove(booking_id)
        elif event.new:
            self.merge(event.new)
        return str(booking_id)

    async def hydrate(self, booking_id: str) -> Optional[Dict[str, Any]]:
        """Re-fetch one booking, retrying network failures with exponential backoff."""
        if self._fetch is None:
            return None
        attempt = 1
        while True:
            try:
                row = await self._fetch(str(booking_id))
                break
            except NETWORK_ERRORS as e:
                if attempt >= self.max_attempts:
                    logger.warning(f"Giving up re-fetching booking {booking_id} after {attempt} attempts: {str(e)}")
                    return None
                delay = self.base_delay * (2 ** (attempt - 1))
                logger.debug(f"Re-fetch of booking {booking_id} failed (attempt {attempt}), retrying in {delay}s")
                await asyncio.sleep(delay)
                attempt += 1
            except Exception as e:
                logger.warning(f"Re-fetch of booking {booking_id} failed: {str(e)}")
                return None

        if not self.alive:
            return None
        if row is None:
            self.remove(booking_id)
            return None
        self.merge(row)
        return self.get(booking_id)

    def close(self) -> None:
        self.alive = False
