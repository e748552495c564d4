"""Live sync: keeps a view current by full re-fetch on change signals."""
import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from core.exceptions import MessagingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveView(Generic[T]):
    """
    Re-runs ``fetch`` and hands the result to ``on_update`` whenever notified.

    - Signals arriving within ``debounce_seconds`` collapse into one fetch,
      and at most one signal-driven fetch is in flight at a time.
    - Every fetch gets a sequence number; a result is applied only if no
      newer fetch was started meanwhile and the view is still open.
    - Fetch failures go to ``on_error`` instead of leaving a stale result
      looking current.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_update: Callable[[T], Awaitable[None]],
        on_error: Optional[Callable[[MessagingError], Awaitable[None]]] = None,
        debounce_seconds: float = 0.25,
        name: str = "view",
    ):
        self._fetch = fetch
        self._on_update = on_update
        self._on_error = on_error
        self.debounce_seconds = debounce_seconds
        self.name = name

        self._seq = 0
        self._dirty = False
        self._closed = False
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        """True while a signal is waiting to be turned into a fetch."""
        return self._dirty

    def notify(self) -> None:
        """Change signal from the feed. Never blocks, never fetches inline."""
        if self._closed:
            return
        self._dirty = True
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._dirty and not self._closed:
            if self.debounce_seconds > 0:
                await asyncio.sleep(self.debounce_seconds)
            self._dirty = False
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Live refresh of {self.name} failed: {e}", exc_info=True)

    def _is_current(self, seq: int) -> bool:
        return not self._closed and seq == self._seq

    async def refresh(self) -> bool:
        """Fetch now. Returns True if the result was applied."""
        if self._closed:
            return False

        self._seq += 1
        seq = self._seq

        try:
            result = await self._fetch()
        except MessagingError as e:
            if not self._is_current(seq):
                return False
            logger.warning(f"Fetch #{seq} for {self.name} failed: {e}")
            if self._on_error:
                await self._on_error(e)
            return False

        if not self._is_current(seq):
            logger.debug(f"Discarding superseded fetch #{seq} for {self.name}")
            return False

        await self._on_update(result)
        return True

    async def close(self) -> None:
        """Stop applying results. Pending and in-flight fetches are dropped."""
        self._closed = True
        task = self._drain_task
        self._drain_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
