import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class EventBus:
    """
    Explicit publish/subscribe channel handed to every component that emits
    or listens for application signals.

    Handlers may be plain or async callables. A failing handler is logged and
    skipped; it never affects the publisher or the remaining handlers.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}
        self._pending: set = set()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event, handler)

        return unsubscribe

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                self._handlers.pop(event, None)

    def subscriber_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def publish(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(payload)
            except Exception as e:
                logger.error(f"Handler {handler!r} failed for event '{event}': {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: str, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop; dropped async handler for event '{event}'")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(self._run(event, awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _run(event: str, awaitable) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"Async handler failed for event '{event}': {e}")

    async def drain(self) -> None:
        """Wait for async handlers that are still running."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
