import asyncio
import inspect

import pytest
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from ayursutra.lib.config import ConfigSingleton
from ayursutra.lib.connection_manager import RealtimeConnectionManager
from ayursutra.lib.event_dispatcher import EventDispatcher
from ayursutra.lib.local_notifier import LocalNotifier, NotificationPermission

SERVER_URL = "http://localhost:8000"

FAST_TIMINGS = {
    "reconnection_delay": 0.001,
    "reconnection_delay_max": 0.005,
    "connect_timeout": 0.5,
    "disconnect_grace": 0.05,
}


class FakeSocketClient:
    """Stands in for socketio.AsyncClient; the test drives the server side."""

    def __init__(self, fail_connects: int = 0, hang_connects: int = 0):
        self.handlers = {}
        self.connected = False
        self.sid = None
        self.emitted = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.fail_connects = fail_connects
        self.hang_connects = hang_connects
        self.url = None

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, transports=None, wait_timeout=None):
        self.connect_calls += 1
        self.url = url
        if self.hang_connects > 0:
            self.hang_connects -= 1
            await asyncio.sleep(3600)
        if self.fail_connects > 0:
            self.fail_connects -= 1
            await self.trigger("connect_error", "connection refused")
            raise SocketIOConnectionError("connection refused")
        self.connected = True
        self.sid = f"sid-{self.connect_calls}"
        await self.trigger("connect")

    async def disconnect(self):
        self.disconnect_calls += 1
        if self.connected:
            self.connected = False
            self.sid = None
            await self.trigger("disconnect", "client disconnect")

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def trigger(self, event, *args):
        handler = self.handlers.get(event)
        if handler is None:
            return
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    async def drop(self, reason="transport close"):
        """Simulate the server side going away."""
        self.connected = False
        self.sid = None
        await self.trigger("disconnect", reason)

    async def push(self, event, data=None):
        """Simulate the server emitting `event` to this client."""
        await self.trigger(event, data)


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, data=None):
        self.calls.append(data)


class StubNotifier(LocalNotifier):
    def __init__(self, answer=NotificationPermission.GRANTED):
        super().__init__()
        self.answer = answer
        self.requests = 0
        self.shown = []

    async def _ask(self):
        self.requests += 1
        return self.answer

    def _display(self, record):
        self.shown.append(record)


class FakeResponse:
    def __init__(self, status, payload, reason="OK"):
        self.status = status
        self._payload = payload
        self.reason = reason

    async def json(self, content_type=None):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Minimal aiohttp.ClientSession replacement keyed by (method, path suffix)."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []
        self.closed = False

    def request(self, method, url, json=None, headers=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers})
        for (route_method, suffix), response in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, {"success": False, "message": "Not found"}, reason="Not Found")

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_config():
    ConfigSingleton.reset()
    yield
    ConfigSingleton.reset()


@pytest.fixture
def dispatcher():
    return EventDispatcher("test")


@pytest.fixture
async def make_manager(dispatcher):
    created = []

    def _make(manager_kwargs=None, **client_kwargs):
        clients = []

        def factory():
            client = FakeSocketClient(**client_kwargs)
            clients.append(client)
            return client

        options = {**FAST_TIMINGS, **(manager_kwargs or {})}
        manager = RealtimeConnectionManager(
            SERVER_URL, dispatcher, client_factory=factory, **options
        )
        created.append(manager)
        return manager, clients

    yield _make

    for manager in created:
        await manager.aclose()
