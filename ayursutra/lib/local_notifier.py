# ayursutra/lib/local_notifier.py

import logging
from enum import Enum

from ayursutra.models.notification import NotificationRecord


class NotificationPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class LocalNotifier:
    """OS-level notification display.

    Subclasses decide how permission is obtained and how a record is shown.
    Showing without permission is a silent no-op; the ledger never depends on it.
    """

    def __init__(self):
        self.permission = NotificationPermission.DEFAULT
        self.logger = logging.getLogger(__name__)

    @property
    def granted(self) -> bool:
        return self.permission == NotificationPermission.GRANTED

    async def request_permission(self) -> NotificationPermission:
        if self.permission == NotificationPermission.DEFAULT:
            self.permission = await self._ask()
            self.logger.info(f"Local notification permission: {self.permission.value}")
        return self.permission

    async def _ask(self) -> NotificationPermission:
        return NotificationPermission.DENIED

    def show(self, record: NotificationRecord) -> bool:
        if not self.granted:
            return False
        try:
            self._display(record)
            return True
        except Exception as e:
            self.logger.warning(f"Could not display notification {record.id}: {e}")
            return False

    def _display(self, record: NotificationRecord) -> None:
        """Show `record` to the user; the base class displays nothing."""


class NullNotifier(LocalNotifier):
    """Never shows anything; permission is always denied."""


class LogNotifier(LocalNotifier):
    """Grants permission and writes each shown record as a structured log line."""

    async def _ask(self) -> NotificationPermission:
        return NotificationPermission.GRANTED

    def _display(self, record: NotificationRecord) -> None:
        self.logger.info(
            f"{record.icon} {record.title}: {record.message}",
            extra={
                "notification_id": record.id,
                "notification_type": record.type,
                "notification_timestamp": record.timestamp,
            },
        )
