import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

module_logger = logging.getLogger(__name__)

DEFAULT_TRANSPORTS = ("websocket", "polling")

# Errors a single connection attempt may raise; all of them are retried.
TRANSPORT_ERRORS = (SocketIOConnectionError, asyncio.TimeoutError, OSError)


def resolve_server_url(page_origin: str, port: int) -> str:
    """Swap the port of `page_origin` for the realtime server port.

    `http://clinic.local:5173` with port 8000 becomes `http://clinic.local:8000`.
    """
    parts = urlsplit(page_origin)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Invalid page origin: {page_origin!r}")
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    return urlunsplit((parts.scheme, f"{host}:{port}", "", "", ""))


def create_socketio_client(logger: Optional[logging.Logger] = None) -> socketio.AsyncClient:
    """Build a Socket.IO client with built-in reconnection turned off.

    Reconnection and backoff are owned by the connection manager so they can
    be cancelled together with the session.
    """
    client = socketio.AsyncClient(
        reconnection=False,
        logger=logger or False,
        engineio_logger=False,
    )
    (logger or module_logger).debug("Socket.IO client created")
    return client
