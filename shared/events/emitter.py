# shared/events/emitter.py
import asyncio
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Any, Set

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class EventEmitter:
    """
    Observer registry cho các component (connection, router, scheduler).

    Nhiều consumer có thể subscribe cùng một event mà không ghi đè lẫn nhau.
    Handler có thể là sync hoặc async; handler async được schedule trên
    event loop đang chạy.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register handler, returns an unsubscribe function"""
        self._handlers[event].append(handler)

        def unsubscribe():
            self.off(event, handler)

        return unsubscribe

    def off(self, event: str, handler: Handler) -> bool:
        handlers = self._handlers.get(event)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def emit(self, event: str, *args, **kwargs) -> int:
        """
        Call every handler registered for event.

        A failing handler is logged and does not prevent the others from
        running. Returns the number of handlers invoked.
        """
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                result = handler(*args, **kwargs)
                if asyncio.iscoroutine(result):
                    self._schedule(event, result)
            except Exception as e:
                logger.error(f"❌ Handler for '{self.name}.{event}' failed: {e}", exc_info=True)
        return len(handlers)

    def _schedule(self, event: str, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"⚠️ No running loop for async handler of '{self.name}.{event}'")
            return

        task = loop.create_task(coro)
        self._pending.add(task)

        def _done(t: asyncio.Task):
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"❌ Async handler for '{self.name}.{event}' failed: {t.exception()}")

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for async handlers scheduled so far"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        self._handlers.clear()
