"""
Debounce utility for recomputing markup figures while a selection is edited.

Only the last call made within the delay window runs; every earlier call
is cancelled through its token, never queued.

USAGE:
    debouncer = Debouncer(recompute, delay=0.5)
    debouncer.call(states)   # cancelled by the next call
    debouncer.call(states)   # runs 0.5s later unless another call arrives
    debouncer.close()        # teardown: drop whatever is pending
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from app.config import RECOMPUTE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class Debouncer:
    def __init__(self, func: Callable[..., Any], delay: float = RECOMPUTE_DEBOUNCE_SECONDS):
        self.func = func
        self.delay = delay
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def call(self, *args, **kwargs) -> CancellationToken:
        """Schedule func(*args, **kwargs), cancelling the previous pending call."""
        if self._closed:
            raise RuntimeError("Debouncer is closed")
        self.cancel()
        token = CancellationToken()
        self._token = token
        self._task = asyncio.ensure_future(self._run(token, args, kwargs))
        return token

    async def _run(self, token: CancellationToken, args, kwargs) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            return
        if token.cancelled:
            return
        try:
            result = self.func(*args, **kwargs)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(f"Debounced call failed: {exc}", exc_info=True)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._token = None
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending call to settle (run or be cancelled)."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def close(self) -> None:
        self.cancel()
        self._closed = True
