# ayursutra/lib/event_dispatcher.py

import logging
from typing import Any, Callable, Optional

Handler = Callable[[Any], Any]


class EventDispatcher:
    """Named-event publish/subscribe registry.

    Handlers run synchronously, in registration order. A handler that raises
    is logged and skipped; the remaining handlers for the event still run.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._listeners: dict[str, list[Handler]] = {}
        self.logger = logging.getLogger(__name__)

    def on(self, event: str, handler: Handler) -> None:
        self._listeners.setdefault(event, []).append(handler)
        self.logger.debug(f"[{self.name}] Handler registered for '{event}'")

    def off(self, event: str, handler: Handler) -> bool:
        handlers = self._listeners.get(event)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._listeners[event]
        self.logger.debug(f"[{self.name}] Handler removed for '{event}'")
        return True

    def emit(self, event: str, data: Any = None) -> int:
        """Deliver `data` to every handler of `event`; returns how many succeeded."""
        # snapshot so handlers may call on/off while we iterate
        handlers = list(self._listeners.get(event, ()))
        delivered = 0
        for handler in handlers:
            try:
                handler(data)
                delivered += 1
            except Exception:
                self.logger.exception(
                    f"[{self.name}] Error in '{event}' handler {getattr(handler, '__qualname__', handler)!r}"
                )
        return delivered

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self, event: Optional[str] = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
