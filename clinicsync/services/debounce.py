from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from clinicsync.core.config import settings

logger = logging.getLogger(__name__)


class DebounceController:
    """Turns a burst of search edits into a single committed value.

    Each ``push`` re-arms a timer; the value is committed once no edit has
    arrived for ``quiet_period_ms``. Values shorter than ``min_length`` are
    committed as ``""`` (no filter). A commit equal to the previous one is
    not emitted again.
    """

    def __init__(
        self,
        on_commit: Callable[[str], Any],
        *,
        quiet_period_ms: Optional[int] = None,
        min_length: Optional[int] = None,
        initial: str = "",
    ) -> None:
        self.on_commit = on_commit
        self.quiet_period_ms = settings.search_debounce_ms if quiet_period_ms is None else quiet_period_ms
        self.min_length = settings.search_min_length if min_length is None else min_length
        self.value = initial
        self.committed = self._gate(initial)
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, value: str) -> None:
        if self._closed:
            return
        self.value = value
        self.cancel()
        self._task = asyncio.create_task(self._wait_and_commit(value))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Commit the latest value now instead of waiting for the timer."""
        if self._closed:
            return
        self.cancel()
        await self._commit(self.value)

    async def close(self) -> None:
        self._closed = True
        task = self._task
        self.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _gate(self, value: str) -> str:
        return value if len(value) >= self.min_length else ""

    async def _wait_and_commit(self, value: str) -> None:
        try:
            await asyncio.sleep(self.quiet_period_ms / 1000)
        except asyncio.CancelledError:
            return
        self._task = None
        await self._commit(value)

    async def _commit(self, value: str) -> None:
        committed = self._gate(value)
        if committed == self.committed:
            return
        self.committed = committed
        logger.debug("Search committed: %r", committed)
        result = self.on_commit(committed)
        if inspect.isawaitable(result):
            await result
