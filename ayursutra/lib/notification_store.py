# ayursutra/lib/notification_store.py

import logging
from collections import deque
from typing import Optional

from ayursutra.lib.event_dispatcher import EventDispatcher, Handler
from ayursutra.models.notification import NotificationRecord

MAX_NOTIFICATIONS = 50


class NotificationStore:
    """Bounded in-memory ledger of notification records.

    Records are kept most recent first. Once `capacity` is reached the oldest
    record is evicted on every add. `unread_count` is maintained on each
    mutation and always matches the number of unread records held.

    Observers subscribe with `on()` to `added`, `read`, `read_all`, `removed`,
    `evicted`, `cleared`, or `changed` (fired once after every mutation).
    Observers only ever run once the ledger is consistent again.
    """

    def __init__(self, capacity: int = MAX_NOTIFICATIONS):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._records: deque[NotificationRecord] = deque()
        self._index: dict[str, NotificationRecord] = {}
        self._unread = 0
        self._events = EventDispatcher("notification_store")
        self.logger = logging.getLogger(__name__)

    @property
    def unread_count(self) -> int:
        return self._unread

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, notification_id: str) -> bool:
        return notification_id in self._index

    def on(self, event: str, handler: Handler) -> None:
        self._events.on(event, handler)

    def off(self, event: str, handler: Handler) -> bool:
        return self._events.off(event, handler)

    def list_notifications(self) -> list[NotificationRecord]:
        """Snapshot of the ledger, most recent first."""
        return [record.model_copy() for record in self._records]

    def get(self, notification_id: str) -> Optional[NotificationRecord]:
        record = self._index.get(notification_id)
        return record.model_copy() if record else None

    def add(self, record: NotificationRecord) -> NotificationRecord:
        record = record.model_copy()
        replaced = self._discard(record.id)
        if replaced is not None:
            self.logger.debug(f"Replacing notification {record.id} already in ledger")

        self._records.appendleft(record)
        self._index[record.id] = record
        if not record.is_read:
            self._unread += 1

        evicted = []
        while len(self._records) > self.capacity:
            oldest = self._records.pop()
            del self._index[oldest.id]
            if not oldest.is_read:
                self._decrement_unread()
            evicted.append(oldest)

        self.logger.debug(
            f"Notification {record.id} added ({len(self._records)} held, {self._unread} unread)"
        )
        self._events.emit("added", record.model_copy())
        for oldest in evicted:
            self._events.emit("evicted", oldest)
        self._changed()
        return record.model_copy()

    def mark_as_read(self, notification_id: str) -> bool:
        record = self._index.get(notification_id)
        if record is None or record.is_read:
            return False
        record.is_read = True
        self._decrement_unread()
        self._events.emit("read", record.model_copy())
        self._changed()
        return True

    def mark_all_as_read(self) -> int:
        marked = 0
        for record in self._records:
            if not record.is_read:
                record.is_read = True
                marked += 1
        self._unread = 0
        if marked:
            self._events.emit("read_all", marked)
            self._changed()
        return marked

    def remove(self, notification_id: str) -> bool:
        record = self._discard(notification_id)
        if record is None:
            return False
        self._events.emit("removed", record)
        self._changed()
        return True

    def clear(self) -> None:
        had_records = bool(self._records)
        self._records.clear()
        self._index.clear()
        self._unread = 0
        if had_records:
            self._events.emit("cleared")
            self._changed()

    def _discard(self, notification_id: str) -> Optional[NotificationRecord]:
        record = self._index.pop(notification_id, None)
        if record is None:
            return None
        self._records.remove(record)
        if not record.is_read:
            self._decrement_unread()
        return record

    def _decrement_unread(self) -> None:
        self._unread = max(0, self._unread - 1)

    def _changed(self) -> None:
        self._events.emit("changed", self)
