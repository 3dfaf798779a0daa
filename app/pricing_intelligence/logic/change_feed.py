"""
Change notifications for cost records and revenue history.

CostRecordFeed is an in-process observer registry: the cost record
repository notifies after each write and editor sessions subscribe per
tenant. Subscribers run in the background, so writes never wait on them.
RevenuePoller refetches the revenue history on an interval; once stopped
it is stale and late responses are discarded.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from app.config import REVENUE_POLL_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], Any]


class CostRecordFeed:
    def __init__(self):
        self._subscribers: Dict[str, List[ChangeCallback]] = defaultdict(list)
        self._pending: Set[asyncio.Future] = set()

    def subscribe(self, user_id: str, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register callback(record_set) for a tenant's cost record changes.

        RETURNS:
        A function that removes the subscription
        """
        self._subscribers[user_id].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(user_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[user_id]

        return unsubscribe

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, []))

    async def publish(self, user_id: str, record_set: str) -> None:
        for callback in list(self._subscribers.get(user_id, [])):
            try:
                result = callback(record_set)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                # One broken subscriber must not block the others
                logger.error(f"Cost record subscriber failed for user {user_id}: {exc}", exc_info=True)

    def notify(self, user_id: str, record_set: str) -> Optional[asyncio.Future]:
        """Schedule publish() in the background; the writer does not wait for subscribers."""
        if not self._subscribers.get(user_id):
            return None
        future = asyncio.ensure_future(self.publish(user_id, record_set))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        return future

    async def drain(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


cost_record_feed = CostRecordFeed()


class RevenuePoller:
    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        on_update: Callable[[Any], Any],
        interval: float = REVENUE_POLL_INTERVAL_SECONDS,
    ):
        self.fetch = fetch
        self.on_update = on_update
        self.interval = interval
        self.stale = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None and not self.stale:
            self._task = asyncio.ensure_future(self._loop())

    async def poll_once(self) -> bool:
        """Fetch once; returns False when the result arrived after stop()."""
        result = await self.fetch()
        if self.stale:
            logger.debug("Discarding revenue history fetched after the poller stopped")
            return False
        outcome = self.on_update(result)
        if inspect.isawaitable(outcome):
            await outcome
        return True

    async def _loop(self) -> None:
        while not self.stale:
            await asyncio.sleep(self.interval)
            if self.stale:
                break
            try:
                await self.poll_once()
            except Exception as exc:
                logger.warning(f"Revenue history refresh failed: {exc}")

    def stop(self) -> None:
        self.stale = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
