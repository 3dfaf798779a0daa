"""
Selection state persistence for markup blocks.

A selection maps cost record ids to "include in this block". It is stored
as one blob per block and always written whole. Saving merges forward the
saved entries of records the editor did not show, so selections made for
records outside the current view are never dropped.
"""

import logging
from typing import Dict, Iterable, Optional

from app.pricing_intelligence.logic.config_store import ConfigurationStore, selection_state_type

logger = logging.getLogger(__name__)

SelectionState = Dict[str, bool]


def coerce_selection(value) -> SelectionState:
    if not isinstance(value, dict):
        return {}
    return {str(k): bool(v) for k, v in value.items()}


def initial_selection(record_ids: Iterable[str]) -> SelectionState:
    """Selection for a new block: every currently active record included."""
    return {record_id: True for record_id in record_ids}


def merge_forward(
    previous: SelectionState,
    new_state: SelectionState,
    record_id_universe: Iterable[str],
) -> SelectionState:
    """New state plus every previous entry whose id is outside the universe."""
    universe = set(record_id_universe)
    merged = dict(new_state)
    for record_id, included in previous.items():
        if record_id not in universe:
            merged[record_id] = included
    return merged


class SelectionStore:
    def __init__(self, config_store: ConfigurationStore):
        self.config_store = config_store

    async def load(self, user_id: str, block_id: str) -> SelectionState:
        """Saved selection; a block with nothing saved includes nothing."""
        value = await self.config_store.load(user_id, selection_state_type(block_id))
        return coerce_selection(value)

    async def save(
        self,
        user_id: str,
        block_id: str,
        new_state: SelectionState,
        record_id_universe: Optional[Iterable[str]] = None,
    ) -> SelectionState:
        """
        Persist a selection, keeping saved entries for records outside
        record_id_universe (defaults to the ids in new_state).

        RETURNS:
        The merged selection that was written
        """
        new_state = coerce_selection(new_state)
        universe = set(record_id_universe) if record_id_universe is not None else set(new_state)

        previous = await self.load(user_id, block_id)
        merged = merge_forward(previous, new_state, universe)
        carried = sum(1 for record_id in previous if record_id not in universe)
        if carried:
            logger.info(f"Carried {carried} saved selection entries forward for block {block_id}")

        await self.config_store.save(user_id, selection_state_type(block_id), merged)
        return merged

    async def delete(self, user_id: str, block_id: str) -> None:
        await self.config_store.delete(user_id, selection_state_type(block_id))
