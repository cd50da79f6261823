# ayursutra/lib/session_activation.py

import asyncio
import logging
from typing import Any, Optional

from ayursutra.lib import utc_now_iso
from ayursutra.lib.connection_manager import RealtimeConnectionManager
from ayursutra.lib.local_notifier import LocalNotifier
from ayursutra.lib.notification_manager import NotificationManager
from ayursutra.models.realtime import ConnectionInfo, LifecycleEvent, SystemStatus
from ayursutra.models.user import AuthenticatedUser


class SessionGatedActivation:
    """Keeps the realtime connection alive exactly while a user is signed in.

    Subscribe `on_user_changed` to the auth session. While active, connection
    health is pushed from the connection manager's lifecycle events and also
    sampled every `poll_interval` seconds. Changes are published on the
    dispatcher as `connection_status` (bool) and `system_status`
    (`online`, `offline` or `error`).
    """

    def __init__(
        self,
        connection_manager: RealtimeConnectionManager,
        notification_manager: NotificationManager,
        notifier: Optional[LocalNotifier] = None,
        poll_interval: float = 5.0,
    ):
        self.connection_manager = connection_manager
        self.notification_manager = notification_manager
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.connection_status = False
        self.system_status = SystemStatus.OFFLINE
        self.last_connected: Optional[str] = None
        self._user_id: Optional[str] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._permission_task: Optional[asyncio.Task] = None
        self._permission_requested = False
        self.logger = logging.getLogger(__name__)

    @property
    def active(self) -> bool:
        return self._user_id is not None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            is_connected=self.connection_status,
            socket_id=self.connection_manager.get_connection_id(),
            system_status=self.system_status,
            last_connected=self.last_connected,
            user_id=self._user_id,
        )

    def on_user_changed(self, user: Optional[AuthenticatedUser]) -> None:
        if user is None:
            self.deactivate()
            return

        user_id = str(user.id)
        if user_id == self._user_id:
            return
        if self._user_id is not None:
            self.deactivate()
        self._activate(user_id)

    def _lifecycle_handlers(self):
        return (
            (LifecycleEvent.CONNECTED.value, self._on_connected),
            (LifecycleEvent.DISCONNECTED.value, self._on_disconnected),
            (LifecycleEvent.CONNECTION_ERROR.value, self._on_connection_error),
        )

    def _activate(self, user_id: str) -> None:
        self._user_id = user_id
        self.notification_manager.register()
        for event, handler in self._lifecycle_handlers():
            self.connection_manager.on(event, handler)
        self.connection_manager.connect(user_id)
        self.logger.info(f"Realtime notifications activated for user {user_id}")

        self._request_permission_once()
        self._sample()
        if self.poll_interval > 0:
            self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    def deactivate(self) -> None:
        if self._user_id is None:
            return
        user_id, self._user_id = self._user_id, None

        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

        self.notification_manager.unregister()
        for event, handler in self._lifecycle_handlers():
            self.connection_manager.off(event, handler)
        self.connection_manager.disconnect()
        self.last_connected = None
        self._set_status(SystemStatus.OFFLINE)
        self.logger.info(f"Realtime notifications deactivated for user {user_id}")

    async def aclose(self) -> None:
        self.deactivate()
        if self._permission_task is not None and not self._permission_task.done():
            self._permission_task.cancel()
            try:
                await self._permission_task
            except asyncio.CancelledError:
                pass

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            self._sample()

    def _sample(self) -> None:
        if self.connection_manager.is_connected():
            self._set_status(SystemStatus.ONLINE)
        elif self.system_status != SystemStatus.ERROR:
            # an error stays visible until the next successful connection
            self._set_status(SystemStatus.OFFLINE)

    def _on_connected(self, data: Any = None) -> None:
        self.last_connected = utc_now_iso()
        self._set_status(SystemStatus.ONLINE)

    def _on_disconnected(self, data: Any = None) -> None:
        self._set_status(SystemStatus.OFFLINE)

    def _on_connection_error(self, data: Any = None) -> None:
        # retries inside the grace window are not surfaced
        if self.connection_manager.is_connected():
            return
        self._set_status(SystemStatus.ERROR)

    def _set_status(self, status: SystemStatus) -> None:
        dispatcher = self.connection_manager.dispatcher
        if status != self.system_status:
            self.system_status = status
            self.logger.info(f"Realtime system status: {status.value}")
            dispatcher.emit(LifecycleEvent.SYSTEM_STATUS.value, status.value)

        online = status == SystemStatus.ONLINE
        if online != self.connection_status:
            self.connection_status = online
            self.logger.info(f"Connection status: {'online' if online else 'offline'}")
            dispatcher.emit(LifecycleEvent.CONNECTION_STATUS.value, online)

    def _request_permission_once(self) -> None:
        if self._permission_requested or self.notifier is None:
            return
        self._permission_requested = True
        self._permission_task = asyncio.get_running_loop().create_task(
            self._request_permission()
        )

    async def _request_permission(self) -> None:
        try:
            await self.notifier.request_permission()
        except Exception as e:
            self.logger.warning(f"Notification permission request failed: {e}")
