# crewlink/infrastructure/event_dispatcher.py
import logging
from collections import defaultdict
from collections.abc import Callable

from crewlink.domain.events import Event


class EventDispatcher:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.handlers: dict[str, list[Callable]] = defaultdict(list)
        self.logger = logger or logging.getLogger(__name__)

    def register(self, event_type: type[Event] | str, handler: Callable) -> None:
        if isinstance(event_type, type):
            event_type = event_type.__name__
        self.handlers[event_type].append(handler)

    async def dispatch(self, event: Event) -> None:
        event_type = event.__class__.__name__
        for handler in self.handlers[event_type]:
            # Dispatch happens after commit; handler failures are logged, not raised.
            try:
                await handler(event)
            except Exception:
                self.logger.exception(f"Handler {handler!r} failed for {event_type}")
