"""
Selection Editor Session
========================

Server side of the cost configuration dialog for one markup block.

HOW IT WORKS:
1. open(): load cost sources, the saved selection and the period (a failed
   load is reported and the editor starts empty), subscribe to cost record
   changes and start polling the revenue history
2. toggle()/set_all(): change the unsaved selection and schedule a
   debounced recompute; the figures are pushed to the client
3. A cost record change or a new revenue history reloads the data and
   schedules a recompute as well
4. save(): persist the unsaved selection, merging forward saved entries of
   records the dialog did not show
5. close(): cancel the pending recompute, unsubscribe and stop polling

Nothing is persisted until save().
"""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import RECOMPUTE_DEBOUNCE_SECONDS, REVENUE_POLL_INTERVAL_SECONDS
from app.core.error_handlers import ReservedScenarioError
from app.pricing_intelligence.logic.change_feed import CostRecordFeed, RevenuePoller, cost_record_feed
from app.pricing_intelligence.logic.debounce import Debouncer
from app.pricing_intelligence.logic.markup_service import CostSources, MarkupService, compute_block
from app.pricing_intelligence.models.markup_schemas import (
    BlockCalculation,
    MarkupBlock,
    Notification,
    PeriodFilter,
    RevenueEntry,
)

logger = logging.getLogger(__name__)

PushCallback = Callable[[Dict[str, Any]], Awaitable[None]]


class SelectionEditorSession:
    def __init__(
        self,
        user_id: str,
        block: MarkupBlock,
        service: MarkupService,
        push: PushCallback,
        feed: CostRecordFeed = cost_record_feed,
        debounce_delay: float = RECOMPUTE_DEBOUNCE_SECONDS,
        poll_interval: float = REVENUE_POLL_INTERVAL_SECONDS,
    ):
        if block.is_sub_recipe:
            raise ReservedScenarioError(block.id)
        self.user_id = user_id
        self.block = block
        self.service = service
        self.push = push
        self.feed = feed

        self.states: Dict[str, bool] = {}
        self.period: PeriodFilter = block.period
        self.sources = CostSources()
        self.last_calculation: Optional[BlockCalculation] = None
        # Load failures from open(), reported until the selection is saved
        self.notifications: List[Notification] = []

        self._debouncer = Debouncer(self.recompute, delay=debounce_delay)
        self._poller = RevenuePoller(
            fetch=lambda: self.service.revenue_history.list_entries(self.user_id),
            on_update=self._on_revenue,
            interval=poll_interval,
        )
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> BlockCalculation:
        self.sources = await self.service.load_cost_sources(self.user_id)
        self.notifications = []
        self.states, self.period = await self.service.load_block_state(
            self.user_id, self.block, self.notifications
        )

        self._unsubscribe = self.feed.subscribe(self.user_id, self._on_records_changed)
        self._poller.start()
        logger.info(f"Opened selection editor for block {self.block.id} (user {self.user_id})")
        return await self.recompute()

    def toggle(self, record_id: str, included: bool) -> None:
        self.states[record_id] = bool(included)
        self._schedule()

    def set_all(self, included: bool, record_ids: Optional[List[str]] = None) -> None:
        """Include or exclude every visible record (or the given ids)."""
        for record_id in record_ids if record_ids is not None else self.sources.record_ids():
            self.states[record_id] = bool(included)
        self._schedule()

    def _schedule(self) -> None:
        if not self._closed:
            self._debouncer.call()

    async def recompute(self, now: Optional[datetime] = None) -> BlockCalculation:
        calculation = compute_block(self.block, self.states, self.period, self.sources, now)
        calculation.notifications = [*self.sources.notifications, *self.notifications]
        self.last_calculation = calculation
        if not self._closed:
            await self.push({"type": "calculation", "data": calculation.model_dump(mode="json")})
        return calculation

    async def _on_records_changed(self, record_set: str) -> None:
        if self._closed:
            return
        logger.debug(f"Reloading cost sources after a change in {record_set}")
        revenue = self.sources.revenue_entries
        self.sources = await self.service.load_cost_sources(self.user_id)
        if not self.sources.revenue_entries:
            self.sources.revenue_entries = revenue
        self._schedule()

    def _on_revenue(self, entries: List[RevenueEntry]) -> None:
        self.sources.revenue_entries = list(entries)
        self._schedule()

    async def save(self) -> Dict[str, bool]:
        """Persist the unsaved selection; returns what was written."""
        merged = await self.service.selection_store.save(
            self.user_id,
            self.block.id,
            self.states,
            record_id_universe=self.sources.record_ids(),
        )
        self.states = dict(merged)
        self.notifications = []
        if not self._closed:
            await self.push({"type": "saved", "states": merged})
        return merged

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._debouncer.close()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._poller.stop()
        logger.info(f"Closed selection editor for block {self.block.id}")
