# ayursutra/lib/notification_manager.py

import logging
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from ayursutra.lib import utc_now_iso
from ayursutra.lib.connection_manager import RealtimeConnectionManager
from ayursutra.lib.local_notifier import LocalNotifier, NullNotifier
from ayursutra.lib.notification_store import NotificationStore
from ayursutra.models.notification import (
    BOOKING_TITLE,
    DEFAULT_TITLE,
    WELLNESS_DEFAULT_MESSAGE,
    WELLNESS_TITLE,
    BookingUpdateEvent,
    NotificationEvent,
    NotificationRecord,
    NotificationType,
    WellnessUpdateEvent,
)
from ayursutra.models.realtime import InboundEvent
from ayursutra.models.user import AuthenticatedUser


class NotificationManager:
    """Turns inbound realtime events into ledger records."""

    def __init__(
        self,
        store: NotificationStore,
        connection_manager: RealtimeConnectionManager,
        notifier: Optional[LocalNotifier] = None,
    ):
        self.store = store
        self.connection_manager = connection_manager
        self.notifier = notifier or NullNotifier()
        self._registered = False
        self.logger = logging.getLogger(__name__)
        self.logger.debug("NotificationManager initialized")

    def _handlers(self):
        return (
            (InboundEvent.NOTIFICATION.value, self.handle_notification),
            (InboundEvent.BOOKING_UPDATE.value, self.handle_booking_update),
            (InboundEvent.WELLNESS_UPDATE.value, self.handle_wellness_update),
        )

    @property
    def registered(self) -> bool:
        return self._registered

    def register(self) -> None:
        if self._registered:
            return
        for event, handler in self._handlers():
            self.connection_manager.on(event, handler)
        self._registered = True
        self.logger.debug("Realtime notification handlers registered")

    def unregister(self) -> None:
        if not self._registered:
            return
        for event, handler in self._handlers():
            self.connection_manager.off(event, handler)
        self._registered = False
        self.logger.debug("Realtime notification handlers unregistered")

    # Inbound events

    def handle_notification(self, data: Any) -> NotificationRecord:
        event = self._parse(NotificationEvent, data)
        record = self.store.add(
            NotificationRecord(
                title=event.title or DEFAULT_TITLE,
                message=event.message,
                type=event.type or NotificationType.INFO.value,
                timestamp=event.timestamp or utc_now_iso(),
                payload=event.data or {},
            )
        )
        self.notifier.show(record)
        return record

    def handle_booking_update(self, data: Any) -> NotificationRecord:
        event = self._parse(BookingUpdateEvent, data)
        return self.store.add(
            NotificationRecord(
                title=BOOKING_TITLE,
                message=event.message,
                type=NotificationType.BOOKING.value,
                timestamp=event.timestamp or utc_now_iso(),
                payload=self._as_payload(data),
            )
        )

    def handle_wellness_update(self, data: Any) -> NotificationRecord:
        event = self._parse(WellnessUpdateEvent, data)
        return self.store.add(
            NotificationRecord(
                title=WELLNESS_TITLE,
                message=event.message or WELLNESS_DEFAULT_MESSAGE,
                type=NotificationType.WELLNESS.value,
                timestamp=event.timestamp or utc_now_iso(),
                payload=self._as_payload(data),
            )
        )

    def send_test_notification(
        self, user: Optional[AuthenticatedUser]
    ) -> Optional[NotificationRecord]:
        """Add a local `system` record so the notification surfaces can be checked."""
        if user is None:
            self.logger.debug("Test notification skipped: no user")
            return None
        return self.store.add(
            NotificationRecord(
                title="Test Notification",
                message="This is a test notification to verify the system is working.",
                type=NotificationType.SYSTEM.value,
            )
        )

    # Ledger pass-throughs for UI surfaces

    @property
    def notifications(self) -> list[NotificationRecord]:
        return self.store.list_notifications()

    @property
    def unread_count(self) -> int:
        return self.store.unread_count

    def mark_as_read(self, notification_id: str) -> bool:
        return self.store.mark_as_read(notification_id)

    def mark_all_as_read(self) -> int:
        return self.store.mark_all_as_read()

    def remove_notification(self, notification_id: str) -> bool:
        return self.store.remove(notification_id)

    def clear_notifications(self) -> None:
        self.store.clear()

    # Parsing

    def _parse(self, model: type[BaseModel], data: Any) -> BaseModel:
        payload = self._as_payload(data)
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            self.logger.warning(f"Malformed {model.__name__} payload, keeping message only: {e}")
            message = payload.get("message")
            return model.model_validate(
                {"message": None if message is None else str(message)}
            )

    @staticmethod
    def _as_payload(data: Any) -> dict[str, Any]:
        if isinstance(data, dict):
            return data
        if data is None:
            return {}
        return {"message": str(data)}
