import asyncio
import logging
from typing import Any, Callable, Dict, List, Tuple

log = logging.getLogger(__name__)

EventHandler = Callable[..., Any]


class EventEmitter:
    """
    Dispatches named events to subscribed handlers.

    Event names are arbitrary strings (IPC channel names may contain spaces,
    control characters or `?`), so subscriptions are kept in a plain mapping
    from name to handler list. Emitting an event nobody subscribed to does
    nothing; events are never queued for later subscribers.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {}

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        """Removes a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event]

    def once(self, event: str, handler: EventHandler) -> EventHandler:
        """
        Subscribes a handler for the next emission of `event` only.

        :return: The wrapper actually registered, usable with `off()`.
        """
        def wrapper(*args: Any) -> Any:
            self.off(event, wrapper)
            return handler(*args)

        self.on(event, wrapper)
        return wrapper

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Calls every handler subscribed to `event` with `args`.

        A failing handler is logged and does not keep the others from running.

        :param event: The event name.
        :return: False if nobody was subscribed, True otherwise.
        """
        handlers = self._handlers.get(event)
        if not handlers:
            log.debug(f"No subscribers for event {event!r}, dropping it.")
            return False

        # Copy so handlers may unsubscribe while being called.
        for handler in list(handlers):
            try:
                handler(*args)
            except Exception as e:
                log.error(f"Error in handler for event {event!r}: {e}", exc_info=True)
        return True

    def wait_for(self, event: str) -> "asyncio.Future[Tuple[Any, ...]]":
        """
        Returns a future resolving to the arguments of the next `event` emission.

        Must be called from within a running event loop.
        """
        future = asyncio.get_running_loop().create_future()

        def resolve(*args: Any) -> None:
            if not future.done():
                future.set_result(args)

        wrapper = self.once(event, resolve)

        def unsubscribe(done: "asyncio.Future") -> None:
            if done.cancelled():
                self.off(event, wrapper)

        future.add_done_callback(unsubscribe)
        return future
