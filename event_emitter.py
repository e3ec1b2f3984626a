from typing import Callable

from loguru import logger


class EventEmitter:
    """Named callback lists. ``on`` returns an unsubscribe callable."""

    def __init__(self):
        self._listeners: dict[str, list[Callable]] = {}

    def on(self, event: str, handler: Callable) -> Callable[[], None]:
        handlers = self._listeners.setdefault(event, [])
        handlers.append(handler)

        def unsubscribe():
            self.off(event, handler)

        return unsubscribe

    def off(self, event: str, handler: Callable):
        handlers = self._listeners.get(event)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._listeners[event]

    def emit(self, event: str, payload=None):
        # copy so handlers may unsubscribe while being called
        for handler in list(self._listeners.get(event, ())):
            try:
                handler(payload)
            except Exception:
                # remaining listeners still run
                logger.exception("listener for {!r} failed", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def remove_all_listeners(self, event: str | None = None):
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
