import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ayursutra.clients.auth_client import AuthClient
from ayursutra.lib.auth_session import AuthSession
from ayursutra.lib.config import ConfigSingleton, RealtimeSettings
from ayursutra.lib.connection_manager import RealtimeConnectionManager
from ayursutra.lib.event_dispatcher import EventDispatcher
from ayursutra.lib.local_notifier import LocalNotifier, LogNotifier
from ayursutra.lib.logging_config import setup_logging
from ayursutra.lib.notification_manager import NotificationManager
from ayursutra.lib.notification_store import NotificationStore
from ayursutra.lib.session_activation import SessionGatedActivation
from ayursutra.models.notification import NotificationRecord


@dataclass
class RealtimeCore:
    settings: RealtimeSettings
    dispatcher: EventDispatcher
    connection_manager: RealtimeConnectionManager
    store: NotificationStore
    notifier: LocalNotifier
    notification_manager: NotificationManager
    auth_client: AuthClient
    auth_session: AuthSession
    activation: SessionGatedActivation


def initialize_managers(
    settings: RealtimeSettings,
    client_factory: Optional[Callable[[], Any]] = None,
    notifier: Optional[LocalNotifier] = None,
) -> RealtimeCore:
    """Build every component in dependency order and wire activation to the auth session."""
    dispatcher = EventDispatcher("realtime")

    connection_manager = RealtimeConnectionManager(
        settings.server_url,
        dispatcher,
        client_factory=client_factory,
        reconnection_delay=settings.reconnection_delay,
        reconnection_delay_max=settings.reconnection_delay_max,
        connect_timeout=settings.connect_timeout,
        disconnect_grace=settings.disconnect_grace,
    )
    logging.info("RealtimeConnectionManager initialized")

    store = NotificationStore(capacity=settings.max_notifications)
    notifier = notifier or LogNotifier()
    notification_manager = NotificationManager(store, connection_manager, notifier)
    logging.info("NotificationManager initialized")

    auth_client = AuthClient(settings.api_base_url, token=settings.auth_token)
    auth_session = AuthSession(auth_client)

    activation = SessionGatedActivation(
        connection_manager,
        notification_manager,
        notifier=notifier,
        poll_interval=settings.status_poll_interval,
    )
    auth_session.subscribe(activation.on_user_changed)
    logging.info("SessionGatedActivation initialized")

    return RealtimeCore(
        settings=settings,
        dispatcher=dispatcher,
        connection_manager=connection_manager,
        store=store,
        notifier=notifier,
        notification_manager=notification_manager,
        auth_client=auth_client,
        auth_session=auth_session,
        activation=activation,
    )


async def shutdown(core: RealtimeCore) -> None:
    """Tear components down in reverse order; every step runs even if an earlier one fails."""
    errors = []
    core.auth_session.unsubscribe(core.activation.on_user_changed)

    for name, close in (
        ("activation", core.activation.aclose),
        ("connection manager", core.connection_manager.aclose),
        ("auth client", core.auth_client.close_client),
    ):
        try:
            await close()
            logging.info(f"Closed {name}")
        except Exception as e:
            errors.append(f"{name}: {e}")

    if errors:
        error_msg = "; ".join(errors)
        logging.error(f"Errors during shutdown: {error_msg}")
        raise RuntimeError(f"Shutdown errors occurred: {error_msg}")


@asynccontextmanager
async def lifespan(
    overrides: Optional[Dict[str, Any]] = None,
    client_factory: Optional[Callable[[], Any]] = None,
    notifier: Optional[LocalNotifier] = None,
    configure_logging: bool = True,
):
    """Client lifecycle management"""
    settings = await ConfigSingleton.initialize(overrides)
    if configure_logging:
        setup_logging(settings.log_level)
    logging.info("Starting up the realtime notification client")

    try:
        core = initialize_managers(settings, client_factory=client_factory, notifier=notifier)
        logging.info("Client initialization complete")
    except Exception as e:
        logging.error(f"Critical error during client initialization: {e}")
        raise

    try:
        yield core
    finally:
        logging.info("Starting client shutdown")
        try:
            await shutdown(core)
        finally:
            logging.info("Client shutdown complete")


async def run():
    async with lifespan() as core:

        def log_notification(record: NotificationRecord):
            logging.info(
                f"{record.icon} [{record.type}] {record.title}: {record.message}",
                extra={"unread": core.store.unread_count},
            )

        def log_status(status: str):
            logging.info(f"Realtime status: {status}")

        core.store.on("added", log_notification)
        core.dispatcher.on("system_status", log_status)

        settings = core.settings
        user = await core.auth_session.restore()
        if user is None and settings.email and settings.password:
            user = await core.auth_session.login(settings.email, settings.password)
        if user is None:
            logging.error(
                f"Not authenticated: {core.auth_session.error or 'no token or credentials configured'}"
            )
            return

        await asyncio.Event().wait()


if __name__ == "__main__":
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logging.info("Interrupted, exiting")
