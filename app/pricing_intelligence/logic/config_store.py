"""
User Configuration Store
========================

Key/value blobs scoped by (user_id, type) in the `user_configurations`
collection: selection states, period filters, revenue history and the
markup block registry.

HOW IT WORKS:
- Reads go through a short TTL cache keyed by "user_id:type"
- Concurrent reads of the same key share one database round-trip
- Writes invalidate the key, upsert by (user_id, type), then repopulate
  the cache with the written value
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from app.config import CONFIG_CACHE_TTL_SECONDS
from app.core.error_handlers import ConfigurationLoadError, ConfigurationSaveError

logger = logging.getLogger(__name__)

# Configuration type tags
MARKUP_BLOCKS = "markup-blocks"
REVENUE_HISTORY = "revenue-history"


def selection_state_type(block_id: str) -> str:
    return f"selection-state-{block_id}"


def period_filter_type(block_id: str) -> str:
    return f"period-filter-{block_id}"


class ConfigurationStore:
    """Read-through cached access to per-user configuration blobs."""

    def __init__(
        self,
        collection,
        ttl_seconds: float = CONFIG_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.collection = collection
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}
        # Bumped on every write/invalidation so a read that started earlier
        # does not overwrite the cache with an older value
        self._generation: Dict[str, int] = {}

    @staticmethod
    def cache_key(user_id: str, config_type: str) -> str:
        return f"{user_id or 'anon'}:{config_type}"

    def _bump(self, key: str) -> None:
        self._generation[key] = self._generation.get(key, 0) + 1

    def invalidate(self, user_id: Optional[str] = None, config_type: Optional[str] = None) -> None:
        """Drop one key, every key of a user, or the whole cache."""
        if user_id is not None and config_type is not None:
            key = self.cache_key(user_id, config_type)
            self._cache.pop(key, None)
            self._bump(key)
            return
        prefix = f"{user_id}:" if user_id is not None else ""
        for key in [k for k in self._cache if k.startswith(prefix)]:
            del self._cache[key]
            self._bump(key)

    async def load(self, user_id: str, config_type: str) -> Any:
        """
        Return the stored configuration or None when nothing is saved.

        RAISES:
        ConfigurationLoadError when the database read fails
        """
        key = self.cache_key(user_id, config_type)

        cached = self._cache.get(key)
        if cached is not None and self._clock() - cached[1] < self.ttl_seconds:
            return cached[0]

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(key, user_id, config_type))
            self._pending[key] = pending
        return await asyncio.shield(pending)

    async def _fetch(self, key: str, user_id: str, config_type: str) -> Any:
        generation = self._generation.get(key, 0)
        try:
            doc = await self.collection.find_one(
                {"user_id": user_id, "type": config_type},
                sort=[("updated_at", -1), ("_id", -1)],
            )
        except Exception as exc:
            logger.error(f"Failed to load configuration '{config_type}' for user {user_id}: {exc}")
            raise ConfigurationLoadError(str(exc)) from exc
        finally:
            self._pending.pop(key, None)

        value = doc.get("configuration") if doc else None
        if self._generation.get(key, 0) == generation:
            self._cache[key] = (value, self._clock())
        return value

    async def save(self, user_id: str, config_type: str, configuration: Any) -> None:
        """
        Upsert a configuration by (user_id, type).

        RAISES:
        ConfigurationSaveError when the database write fails
        """
        key = self.cache_key(user_id, config_type)
        self.invalidate(user_id, config_type)

        try:
            await self.collection.update_one(
                {"user_id": user_id, "type": config_type},
                {"$set": {
                    "configuration": configuration,
                    "updated_at": datetime.now(timezone.utc),
                }},
                upsert=True,
            )
        except Exception as exc:
            logger.error(f"Failed to save configuration '{config_type}' for user {user_id}: {exc}")
            raise ConfigurationSaveError(str(exc)) from exc

        self._cache[key] = (configuration, self._clock())

    async def delete(self, user_id: str, config_type: str) -> None:
        self.invalidate(user_id, config_type)
        try:
            await self.collection.delete_many({"user_id": user_id, "type": config_type})
        except Exception as exc:
            logger.error(f"Failed to delete configuration '{config_type}' for user {user_id}: {exc}")
            raise ConfigurationSaveError(str(exc)) from exc
