"""
Markup Block Registry
=====================

Ordered list of a user's markup blocks, stored as one blob.

HOW IT WORKS:
- Blocks carry their name, desired profit, averaging period and the
  figures last computed for them
- A new block starts with every currently active cost record selected
- The sub-recipe block is a fixed, read-only entry listed after the
  user's blocks; it is never stored and cannot be edited or deleted
"""
import logging
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pydantic import ValidationError

from app.config import DEFAULT_PERIOD_MONTHS
from app.core.error_handlers import ReservedScenarioError, ScenarioNotFoundError
from app.pricing_intelligence.logic.config_store import (
    MARKUP_BLOCKS,
    ConfigurationStore,
    period_filter_type,
)
from app.pricing_intelligence.logic.selection_state import SelectionStore, initial_selection
from app.pricing_intelligence.models.markup_schemas import (
    AggregatedFigures,
    MarkupBlock,
    MarkupBlockCreate,
    MarkupBlockUpdate,
    PeriodFilter,
)

logger = logging.getLogger(__name__)

SUB_RECIPE_BLOCK_ID = "sub-recipe"
SUB_RECIPE_BLOCK_NAME = "Sub-recipe"


def sub_recipe_block() -> MarkupBlock:
    """Category marker for recipes used inside other recipes; all figures zero."""
    return MarkupBlock(
        id=SUB_RECIPE_BLOCK_ID,
        name=SUB_RECIPE_BLOCK_NAME,
        kind="sub_recipe",
        desired_profit=0,
        period=PeriodFilter(kind="all"),
    )


def is_sub_recipe(block_id: str) -> bool:
    return block_id == SUB_RECIPE_BLOCK_ID


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Block name must not be empty")
    return name


def _ensure_mutable(block_id: str) -> None:
    if is_sub_recipe(block_id):
        raise ReservedScenarioError(block_id)


class MarkupRegistry:
    def __init__(self, config_store: ConfigurationStore, selection_store: SelectionStore):
        self.config_store = config_store
        self.selection_store = selection_store

    async def _load_blocks(self, user_id: str) -> List[MarkupBlock]:
        raw = await self.config_store.load(user_id, MARKUP_BLOCKS)
        blocks = []
        for item in raw if isinstance(raw, list) else []:
            try:
                block = MarkupBlock.model_validate(item)
            except (ValidationError, ValueError) as exc:
                logger.warning(f"Skipping malformed markup block for user {user_id}: {exc}")
                continue
            if not is_sub_recipe(block.id):
                blocks.append(block)
        return blocks

    async def _save_blocks(self, user_id: str, blocks: List[MarkupBlock]) -> None:
        await self.config_store.save(
            user_id,
            MARKUP_BLOCKS,
            [b.model_dump(mode="json") for b in blocks],
        )

    async def list_blocks(self, user_id: str, include_sub_recipe: bool = True) -> List[MarkupBlock]:
        blocks = await self._load_blocks(user_id)
        if include_sub_recipe:
            blocks.append(sub_recipe_block())
        return blocks

    async def get_block(self, user_id: str, block_id: str) -> MarkupBlock:
        if is_sub_recipe(block_id):
            return sub_recipe_block()
        for block in await self._load_blocks(user_id):
            if block.id == block_id:
                return block
        raise ScenarioNotFoundError(block_id)

    async def create_block(
        self,
        user_id: str,
        request: MarkupBlockCreate,
        active_record_ids: Iterable[str],
    ) -> MarkupBlock:
        """Append a block and select every active cost record for it."""
        block = MarkupBlock(
            id=str(ObjectId()),
            name=_clean_name(request.name),
            desired_profit=request.desired_profit,
            period=request.period or PeriodFilter(kind="last_n_months", months=DEFAULT_PERIOD_MONTHS),
        )
        blocks = await self._load_blocks(user_id)
        blocks.append(block)
        await self._save_blocks(user_id, blocks)

        selection = initial_selection(active_record_ids)
        await self.selection_store.save(user_id, block.id, selection, record_id_universe=selection)
        await self.config_store.save(user_id, period_filter_type(block.id), block.period.model_dump(mode="json"))

        logger.info(f"Created markup block '{block.name}' ({block.id}) with {len(selection)} records selected")
        return block

    async def update_block(self, user_id: str, block_id: str, request: MarkupBlockUpdate) -> MarkupBlock:
        _ensure_mutable(block_id)
        blocks = await self._load_blocks(user_id)
        index = self._index_of(blocks, block_id)

        changes = {}
        if request.name is not None:
            changes["name"] = _clean_name(request.name)
        if request.desired_profit is not None:
            changes["desired_profit"] = request.desired_profit
        if request.period is not None:
            changes["period"] = request.period

        blocks[index] = blocks[index].model_copy(update=changes)
        await self._save_blocks(user_id, blocks)
        if request.period is not None:
            await self.config_store.save(
                user_id, period_filter_type(block_id), request.period.model_dump(mode="json")
            )
        return blocks[index]

    async def delete_block(self, user_id: str, block_id: str) -> None:
        _ensure_mutable(block_id)
        blocks = await self._load_blocks(user_id)
        index = self._index_of(blocks, block_id)
        removed = blocks.pop(index)

        await self._save_blocks(user_id, blocks)
        await self.selection_store.delete(user_id, block_id)
        await self.config_store.delete(user_id, period_filter_type(block_id))
        logger.info(f"Deleted markup block '{removed.name}' ({block_id})")

    async def load_period(self, user_id: str, block_id: str) -> PeriodFilter:
        """Saved period filter of a block, falling back to the block's own period."""
        if is_sub_recipe(block_id):
            return sub_recipe_block().period
        raw = await self.config_store.load(user_id, period_filter_type(block_id))
        if raw is not None:
            try:
                return PeriodFilter.parse(raw, default_months=DEFAULT_PERIOD_MONTHS)
            except (ValidationError, ValueError) as exc:
                logger.warning(f"Ignoring malformed period filter for block {block_id}: {exc}")
        block = await self.get_block(user_id, block_id)
        return block.period

    async def rename_block(self, user_id: str, block_id: str, name: str) -> MarkupBlock:
        return await self.update_block(user_id, block_id, MarkupBlockUpdate(name=_clean_name(name)))

    async def update_desired_profit(self, user_id: str, block_id: str, desired_profit: float) -> MarkupBlock:
        return await self.update_block(user_id, block_id, MarkupBlockUpdate(desired_profit=desired_profit))

    async def update_period(self, user_id: str, block_id: str, period: PeriodFilter) -> MarkupBlock:
        return await self.update_block(user_id, block_id, MarkupBlockUpdate(period=period))

    async def store_figures(self, user_id: str, figures_by_id: Dict[str, AggregatedFigures]) -> List[MarkupBlock]:
        """Write computed figures back into the stored blocks."""
        blocks = await self._load_blocks(user_id)
        for index, block in enumerate(blocks):
            figures: Optional[AggregatedFigures] = figures_by_id.get(block.id)
            if figures is not None:
                blocks[index] = block.model_copy(update=figures.model_dump())
        await self._save_blocks(user_id, blocks)
        return blocks

    @staticmethod
    def _index_of(blocks: List[MarkupBlock], block_id: str) -> int:
        for index, block in enumerate(blocks):
            if block.id == block_id:
                return index
        raise ScenarioNotFoundError(block_id)
