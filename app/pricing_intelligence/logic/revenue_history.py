"""
Monthly revenue history, stored as one append-only list per user.
"""
import logging
from datetime import date
from typing import Any, List

from bson import ObjectId
from pydantic import ValidationError

from app.pricing_intelligence.logic.config_store import REVENUE_HISTORY, ConfigurationStore
from app.pricing_intelligence.logic.revenue_average import sort_revenue_history
from app.pricing_intelligence.models.markup_schemas import RevenueEntry

logger = logging.getLogger(__name__)


def parse_revenue_entries(raw: Any) -> List[RevenueEntry]:
    if not isinstance(raw, list):
        return []
    entries = []
    for item in raw:
        try:
            entries.append(RevenueEntry.model_validate(item))
        except ValidationError as exc:
            logger.warning(f"Skipping malformed revenue entry {item!r}: {exc.error_count()} error(s)")
    return entries


class RevenueHistory:
    def __init__(self, config_store: ConfigurationStore):
        self.config_store = config_store

    async def list_entries(self, user_id: str) -> List[RevenueEntry]:
        """All entries, most recent month first."""
        raw = await self.config_store.load(user_id, REVENUE_HISTORY)
        return sort_revenue_history(parse_revenue_entries(raw))

    async def append(self, user_id: str, month: date, amount: float) -> RevenueEntry:
        entry = RevenueEntry(id=str(ObjectId()), month=month, amount=amount)

        raw = await self.config_store.load(user_id, REVENUE_HISTORY)
        history = list(raw) if isinstance(raw, list) else []
        history.append(entry.model_dump(mode="json"))

        await self.config_store.save(user_id, REVENUE_HISTORY, history)
        return entry
