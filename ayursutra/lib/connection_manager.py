# ayursutra/lib/connection_manager.py

import asyncio
import logging
from typing import Any, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    wait_exponential,
)

from ayursutra.clients.socketio_client import (
    DEFAULT_TRANSPORTS,
    TRANSPORT_ERRORS,
    SocketIOConnectionError,
    create_socketio_client,
)
from ayursutra.lib.event_dispatcher import EventDispatcher, Handler
from ayursutra.models.realtime import (
    BookingUpdateMessage,
    ConnectionState,
    InboundEvent,
    LifecycleEvent,
    OutboundMessage,
    WellnessUpdateMessage,
)


class RealtimeConnectionManager:
    """Owns the single Socket.IO connection of an authenticated session.

    Inbound server events are re-emitted on the injected dispatcher together
    with `connected`/`disconnected` lifecycle events. Every failed connection
    attempt is published as `connection_error`. A transport drop is only
    reported as `disconnected` once `disconnect_grace` seconds pass without a
    successful reconnect; until then `is_connected()` keeps answering True.

    Every `connect()`/`disconnect()` bumps a generation counter. Transport
    callbacks, retry loops and grace timers carry the generation they were
    started under and do nothing once it is stale.
    """

    def __init__(
        self,
        server_url: str,
        dispatcher: EventDispatcher,
        client_factory: Optional[Callable[[], Any]] = None,
        transports: tuple[str, ...] = DEFAULT_TRANSPORTS,
        reconnection_delay: float = 0.8,
        reconnection_delay_max: float = 3.0,
        connect_timeout: float = 20.0,
        disconnect_grace: float = 1.5,
    ):
        self.server_url = server_url
        self.dispatcher = dispatcher
        self.transports = transports
        self.reconnection_delay = reconnection_delay
        self.reconnection_delay_max = reconnection_delay_max
        self.connect_timeout = connect_timeout
        self.disconnect_grace = disconnect_grace
        self.logger = logging.getLogger(__name__)
        self._client_factory = client_factory or (
            lambda: create_socketio_client(self.logger)
        )

        self._client = None
        self._user_id: Optional[str] = None
        self._generation = 0
        self._state = ConnectionState.DISCONNECTED
        self._connect_task: Optional[asyncio.Task] = None
        self._grace_handle: Optional[asyncio.TimerHandle] = None
        self._ready = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def get_connection_id(self) -> Optional[str]:
        if self._client is not None and self._client.connected:
            return self._client.sid
        return None

    # Lifecycle

    def connect(self, user_id: str):
        """Open (or reuse) the connection for `user_id` and return the transport client."""
        user_id = str(user_id)
        if self._client is not None and self._user_id == user_id:
            if self._client.connected or self._attempt_in_flight():
                self.logger.debug(f"Connection for user {user_id} already active")
                return self._client

        if self._client is not None:
            self.logger.info(
                f"Replacing realtime session of user {self._user_id} with user {user_id}"
            )
            self.disconnect()

        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        self._client = self._client_factory()
        self._bind_transport_handlers(self._client, generation)
        self._state = ConnectionState.CONNECTING
        self.logger.info(f"Connecting to realtime server {self.server_url} for user {user_id}")
        self._connect_task = self._spawn(self._establish(generation))
        return self._client

    def disconnect(self) -> None:
        """Tear the session down now; pending attempts and timers are invalidated."""
        self._generation += 1
        self._cancel_grace()

        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done():
            task.cancel()

        client, self._client = self._client, None
        user_id, self._user_id = self._user_id, None
        was_connected = self._state == ConnectionState.CONNECTED
        self._state = ConnectionState.DISCONNECTED
        self._ready.clear()

        if client is not None:
            self._spawn(self._close_quietly(client))
            self.logger.info(f"Realtime connection closed for user {user_id}")
        if was_connected:
            self.dispatcher.emit(
                LifecycleEvent.DISCONNECTED.value, {"reason": "client disconnect"}
            )

    async def wait_for_connection(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def aclose(self) -> None:
        self.disconnect()
        if self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    self.logger.warning(f"Realtime task ended with error during shutdown: {result}")

    # Local subscriptions

    def on(self, event: str, handler: Handler) -> None:
        self.dispatcher.on(event, handler)

    def off(self, event: str, handler: Handler) -> bool:
        return self.dispatcher.off(event, handler)

    # Outbound

    def emit(self, event: str, payload: Any = None) -> bool:
        """Send `event` to the server; dropped (returns False) when not connected."""
        client = self._client
        if client is None or not client.connected:
            self.logger.debug(f"Dropping outbound '{event}': not connected")
            return False
        self._spawn(self._send(client, event, payload))
        return True

    def send_booking_update(self, user_id: str, message: str) -> bool:
        update = BookingUpdateMessage(user_id=str(user_id), message=message)
        return self.emit(OutboundMessage.BOOKING_UPDATE.value, update.model_dump(by_alias=True))

    def send_wellness_update(self, practitioner_id: str, patient_name: str) -> bool:
        update = WellnessUpdateMessage(
            practitioner_id=str(practitioner_id), patient_name=patient_name
        )
        return self.emit(OutboundMessage.WELLNESS_UPDATE.value, update.model_dump(by_alias=True))

    def join_room(self, room: str) -> bool:
        return self.emit(OutboundMessage.JOIN_ROOM.value, room)

    def leave_room(self, room: str) -> bool:
        return self.emit(OutboundMessage.LEAVE_ROOM.value, room)

    # Transport callbacks

    def _bind_transport_handlers(self, client, generation: int) -> None:
        async def on_connect():
            await self._on_transport_connect(generation)

        def on_disconnect(*args):
            self._on_transport_disconnect(generation, args[0] if args else None)

        def on_connect_error(data=None):
            self.logger.error(f"Realtime connection error: {data}")

        client.on("connect", on_connect)
        client.on("disconnect", on_disconnect)
        client.on("connect_error", on_connect_error)
        for event in InboundEvent:
            client.on(event.value, self._forwarder(event.value, generation))

    def _forwarder(self, event: str, generation: int):
        def forward(data=None):
            if generation != self._generation:
                return
            self.logger.debug(f"Inbound '{event}': {data}")
            self.dispatcher.emit(event, data)

        return forward

    async def _on_transport_connect(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._cancel_grace()
        self._state = ConnectionState.CONNECTED
        self._ready.set()
        client, user_id = self._client, self._user_id
        self.logger.info(f"Realtime connection established (sid={client.sid}) for user {user_id}")

        try:
            await client.emit(OutboundMessage.JOIN.value, user_id)
            self.logger.debug(f"Joined personal room of user {user_id}")
        except Exception as e:
            self.logger.error(f"Failed to join room for user {user_id}: {e}")

        if generation == self._generation:
            self.dispatcher.emit(
                LifecycleEvent.CONNECTED.value,
                {"connectionId": client.sid, "userId": user_id},
            )

    def _on_transport_disconnect(self, generation: int, reason: Any) -> None:
        if generation != self._generation:
            return
        self._ready.clear()
        self.logger.warning(f"Realtime connection lost: {reason}")
        self._schedule_grace(generation, reason)
        if not self._attempt_in_flight():
            self._connect_task = self._spawn(
                self._establish(generation, initial_delay=self.reconnection_delay)
            )

    # Grace window

    def _schedule_grace(self, generation: int, reason: Any) -> None:
        self._cancel_grace()
        loop = asyncio.get_running_loop()
        self._grace_handle = loop.call_later(
            self.disconnect_grace, self._report_disconnect, generation, reason
        )

    def _cancel_grace(self) -> None:
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None

    def _report_disconnect(self, generation: int, reason: Any) -> None:
        self._grace_handle = None
        if generation != self._generation:
            return
        if self._client is not None and self._client.connected:
            return
        if self._state == ConnectionState.DISCONNECTED:
            return
        self._state = ConnectionState.DISCONNECTED
        self.logger.warning(
            f"No reconnect within {self.disconnect_grace}s, reporting disconnected"
        )
        self.dispatcher.emit(LifecycleEvent.DISCONNECTED.value, {"reason": reason})

    # Connection attempts

    def _attempt_in_flight(self) -> bool:
        return self._connect_task is not None and not self._connect_task.done()

    async def _establish(self, generation: int, initial_delay: float = 0.0) -> None:
        client = self._client
        if initial_delay:
            await asyncio.sleep(initial_delay)

        async for attempt in AsyncRetrying(
            wait=wait_exponential(
                multiplier=self.reconnection_delay,
                min=self.reconnection_delay,
                max=self.reconnection_delay_max,
            ),
            retry=retry_if_exception_type(Exception),
            before_sleep=lambda retry_state: self._on_attempt_failed(generation, retry_state),
            reraise=True,
        ):
            with attempt:
                await self._attempt_connect(client, generation)

    async def _attempt_connect(self, client, generation: int) -> None:
        if client.connected:
            return
        try:
            await asyncio.wait_for(
                client.connect(
                    self.server_url,
                    transports=list(self.transports),
                    wait_timeout=self.connect_timeout,
                ),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                f"Connection attempt to {self.server_url} timed out after {self.connect_timeout}s"
            )
            await self._close_quietly(client)
            raise
        if not client.connected:
            raise SocketIOConnectionError("Connection dropped during handshake")

    def _on_attempt_failed(self, generation: int, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        message = (
            f"Connection attempt {retry_state.attempt_number} to {self.server_url} "
            f"failed: {exc}; retrying in {delay:.2f}s"
        )
        if isinstance(exc, TRANSPORT_ERRORS):
            self.logger.warning(message)
        else:
            self.logger.error(message, exc_info=exc)

        if generation == self._generation:
            self.dispatcher.emit(
                LifecycleEvent.CONNECTION_ERROR.value,
                {"error": str(exc), "attempt": retry_state.attempt_number},
            )

    # Helpers

    async def _send(self, client, event: str, payload: Any) -> None:
        try:
            await client.emit(event, payload)
        except Exception as e:
            self.logger.error(f"Failed to send '{event}': {e}")

    async def _close_quietly(self, client) -> None:
        try:
            await client.disconnect()
        except Exception as e:
            self.logger.debug(f"Error while closing realtime client: {e}")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(f"Realtime background task failed: {exc!r}")
