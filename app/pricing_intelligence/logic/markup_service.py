"""
Markup Service
==============

Loads everything a markup block needs and runs the aggregation.

HOW IT WORKS:
1. Load the three cost record sets and the revenue history (in parallel);
   a source that fails to load becomes an empty list plus a notification
2. For each block load its selection and averaging period
3. Trailing revenue average -> aggregation -> ideal markup
4. publish_markups() writes the figures back to the registry and stores a
   snapshot per block in the `markups` collection
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from app.core.error_handlers import MarkupEngineError
from app.pricing_intelligence.logic.cost_aggregation import aggregate_costs
from app.pricing_intelligence.logic.cost_records import (
    FIXED_EXPENSES,
    PAYROLL_ENTRIES,
    SALES_CHARGES,
    CostRecordRepository,
)
from app.pricing_intelligence.logic.markup_pricing import format_markup, ideal_markup, simulate_pricing
from app.pricing_intelligence.logic.markup_registry import MarkupRegistry
from app.pricing_intelligence.logic.revenue_average import trailing_average
from app.pricing_intelligence.logic.revenue_history import RevenueHistory
from app.pricing_intelligence.logic.selection_state import SelectionState, SelectionStore
from app.pricing_intelligence.models.markup_schemas import (
    BlockCalculation,
    BlockListResponse,
    FixedExpense,
    MarkupBlock,
    MarkupSnapshot,
    Notification,
    PayrollEntry,
    PeriodFilter,
    PublishResponse,
    RevenueEntry,
    SalesCharge,
    SimulationRequest,
    SimulationResult,
)

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    FIXED_EXPENSES: "fixed expenses",
    PAYROLL_ENTRIES: "payroll",
    SALES_CHARGES: "sales charges",
    "revenue": "revenue history",
    "selection": "the record selection",
    "period": "the averaging period",
}


@dataclass
class CostSources:
    fixed_expenses: List[FixedExpense] = field(default_factory=list)
    payroll_entries: List[PayrollEntry] = field(default_factory=list)
    sales_charges: List[SalesCharge] = field(default_factory=list)
    revenue_entries: List[RevenueEntry] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)

    def record_ids(self) -> List[str]:
        return [r.id for r in (*self.fixed_expenses, *self.payroll_entries, *self.sales_charges)]


def load_failure(source: str) -> Notification:
    label = SOURCE_LABELS.get(source, source)
    return Notification(
        level="error",
        title=f"Could not load {label}",
        message="Figures were calculated without this data. Try again in a few seconds.",
    )


def compute_block(
    block: MarkupBlock,
    selection: SelectionState,
    period: PeriodFilter,
    sources: CostSources,
    now: Optional[datetime] = None,
) -> BlockCalculation:
    """Aggregate one block from already loaded data."""
    if block.is_sub_recipe:
        figures = block.figures()
        average = 0.0
    else:
        average = trailing_average(sources.revenue_entries, period, now)
        figures = aggregate_costs(
            selection,
            sources.fixed_expenses,
            sources.payroll_entries,
            sources.sales_charges,
            average,
        )
    markup = ideal_markup(figures, block.desired_profit)
    return BlockCalculation(
        block=block.model_copy(update={**figures.model_dump(), "period": period}),
        figures=figures,
        average_revenue=round(average, 2),
        ideal_markup=round(markup, 4) if markup is not None else None,
        ideal_markup_display=format_markup(markup),
    )


class MarkupService:
    def __init__(
        self,
        repository: CostRecordRepository,
        registry: MarkupRegistry,
        selection_store: SelectionStore,
        revenue_history: RevenueHistory,
        snapshots_collection: Any = None,
    ):
        self.repository = repository
        self.registry = registry
        self.selection_store = selection_store
        self.revenue_history = revenue_history
        self.snapshots_collection = snapshots_collection

    async def load_cost_sources(self, user_id: str) -> CostSources:
        results = await asyncio.gather(
            self.repository.list_records(user_id, FIXED_EXPENSES),
            self.repository.list_records(user_id, PAYROLL_ENTRIES, labor_type="indirect"),
            self.repository.list_records(user_id, SALES_CHARGES),
            self.revenue_history.list_entries(user_id),
            return_exceptions=True,
        )
        sources = CostSources()
        names = (FIXED_EXPENSES, PAYROLL_ENTRIES, SALES_CHARGES, "revenue")
        attributes = ("fixed_expenses", "payroll_entries", "sales_charges", "revenue_entries")
        for name, attribute, result in zip(names, attributes, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Failed to load {name} for user {user_id}: {result}")
                sources.notifications.append(load_failure(name))
            else:
                setattr(sources, attribute, list(result))
        return sources

    async def active_record_ids(self, user_id: str) -> List[str]:
        sources = await self.load_cost_sources(user_id)
        return sources.record_ids()

    async def load_block_state(
        self,
        user_id: str,
        block: MarkupBlock,
        notifications: List[Notification],
    ) -> Tuple[SelectionState, PeriodFilter]:
        """Saved selection and period of a block; a failed load is reported and replaced by a default."""
        try:
            selection = await self.selection_store.load(user_id, block.id)
        except MarkupEngineError as exc:
            logger.error(f"Failed to load selection for block {block.id}: {exc}")
            notifications.append(load_failure("selection"))
            selection = {}

        try:
            period = await self.registry.load_period(user_id, block.id)
        except MarkupEngineError as exc:
            logger.error(f"Failed to load period for block {block.id}: {exc}")
            notifications.append(load_failure("period"))
            period = block.period

        return selection, period

    async def calculate_block(
        self,
        user_id: str,
        block: MarkupBlock,
        sources: Optional[CostSources] = None,
        now: Optional[datetime] = None,
    ) -> BlockCalculation:
        if block.is_sub_recipe:
            return compute_block(block, {}, block.period, CostSources(), now)

        notifications: List[Notification] = []
        if sources is None:
            sources = await self.load_cost_sources(user_id)
            notifications.extend(sources.notifications)

        selection, period = await self.load_block_state(user_id, block, notifications)
        calculation = compute_block(block, selection, period, sources, now)
        calculation.notifications = notifications
        return calculation

    async def recalculate_all(self, user_id: str, now: Optional[datetime] = None) -> BlockListResponse:
        """Calculate every block, loading the cost sources once."""
        blocks = await self.registry.list_blocks(user_id)
        sources = await self.load_cost_sources(user_id)

        calculations = []
        for block in blocks:
            calculations.append(await self.calculate_block(user_id, block, sources=sources, now=now))
        return BlockListResponse(blocks=calculations, notifications=sources.notifications)

    async def publish_markups(self, user_id: str, now: Optional[datetime] = None) -> PublishResponse:
        """Recalculate stored blocks, save their figures and replace their snapshots."""
        blocks = await self.registry.list_blocks(user_id, include_sub_recipe=False)
        sources = await self.load_cost_sources(user_id)

        snapshots = []
        notifications = list(sources.notifications)
        figures_by_id = {}
        for block in blocks:
            selection, period = await self.load_block_state(user_id, block, notifications)
            calculation = compute_block(block, selection, period, sources, now)
            figures_by_id[block.id] = calculation.figures

            snapshots.append(MarkupSnapshot(
                user_id=user_id,
                block_id=block.id,
                name=block.name,
                kind=block.kind,
                period=calculation.block.period,
                desired_profit=block.desired_profit,
                spend_on_revenue=calculation.figures.spend_on_revenue,
                charges_on_sales=calculation.figures.charges_on_sales,
                ideal_markup=calculation.ideal_markup,
                applied_markup=calculation.ideal_markup,
                value_in_currency=calculation.figures.value_in_currency,
                selected_fixed_expenses=[r.id for r in sources.fixed_expenses if selection.get(r.id)],
                selected_payroll_entries=[r.id for r in sources.payroll_entries if selection.get(r.id)],
                selected_sales_charges=[r.id for r in sources.sales_charges if selection.get(r.id)],
            ))

        await self.registry.store_figures(user_id, figures_by_id)
        if self.snapshots_collection is not None:
            for snapshot in snapshots:
                await self._replace_snapshot(snapshot)

        logger.info(f"Published {len(snapshots)} markups for user {user_id}")
        return PublishResponse(published=snapshots, notifications=notifications)

    async def _replace_snapshot(self, snapshot: MarkupSnapshot) -> None:
        now = datetime.now(timezone.utc)
        await self.snapshots_collection.update_one(
            {"user_id": snapshot.user_id, "block_id": snapshot.block_id},
            {
                "$set": {**snapshot.model_dump(mode="json"), "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )

    async def simulate(self, user_id: str, request: SimulationRequest) -> SimulationResult:
        """Price a recipe with the freshly calculated figures of a block."""
        block = await self.registry.get_block(user_id, request.block_id)
        calculation = await self.calculate_block(user_id, block)
        return simulate_pricing(request.breakdown, calculation.block)
