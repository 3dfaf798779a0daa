"""
Shared fixtures: in-memory stand-ins for motor collections and a wired
markup service.
"""
import asyncio
from copy import deepcopy
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId

from app.pricing_intelligence.logic.change_feed import CostRecordFeed
from app.pricing_intelligence.logic.config_store import ConfigurationStore
from app.pricing_intelligence.logic.cost_records import (
    FIXED_EXPENSES,
    PAYROLL_ENTRIES,
    SALES_CHARGES,
    CostRecordRepository,
)
from app.pricing_intelligence.logic.markup_registry import MarkupRegistry
from app.pricing_intelligence.logic.markup_service import MarkupService
from app.pricing_intelligence.logic.revenue_history import RevenueHistory
from app.pricing_intelligence.logic.selection_state import SelectionStore


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


def _sort_docs(docs: List[Dict[str, Any]], keys) -> List[Dict[str, Any]]:
    for key, direction in reversed(list(keys)):
        docs = sorted(docs, key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction < 0)
    return docs


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, key, direction: int = 1) -> "FakeCursor":
        keys = key if isinstance(key, list) else [(key, direction)]
        self._docs = _sort_docs(self._docs, keys)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return deepcopy(next(self._iter))
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Subset of the motor collection API used by the markup engine."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.read_count = 0
        self.fail_reads = False
        self.fail_writes = False
        self.read_delay = 0.0

    def _check_write(self):
        if self.fail_writes:
            raise ConnectionError("write failed")

    async def _before_read(self):
        self.read_count += 1
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.fail_reads:
            raise ConnectionError("read failed")

    async def find_one(self, query: Dict[str, Any], sort=None) -> Optional[Dict[str, Any]]:
        await self._before_read()
        docs = [d for d in self.docs if _matches(d, query)]
        if sort:
            docs = _sort_docs(docs, sort)
        return deepcopy(docs[0]) if docs else None

    def find(self, query: Dict[str, Any]) -> FakeCursor:
        if self.fail_reads:
            raise ConnectionError("read failed")
        self.read_count += 1
        return FakeCursor([d for d in self.docs if _matches(d, query)])

    async def insert_one(self, doc: Dict[str, Any]):
        self._check_write()
        doc = deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False):
        self._check_write()
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = {
                **deepcopy(query),
                **deepcopy(update.get("$setOnInsert", {})),
                **deepcopy(update.get("$set", {})),
                "_id": ObjectId(),
            }
            self.docs.append(doc)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def delete_many(self, query: Dict[str, Any]):
        self._check_write()
        before = len(self.docs)
        self.docs = [d for d in self.docs if not _matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))

    async def create_index(self, *args, **kwargs):
        return "index"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_collection():
    return FakeCollection()


@pytest.fixture
def config_store(config_collection, clock):
    return ConfigurationStore(config_collection, ttl_seconds=30, clock=clock)


@pytest.fixture
def record_collections():
    return {
        FIXED_EXPENSES: FakeCollection(),
        PAYROLL_ENTRIES: FakeCollection(),
        SALES_CHARGES: FakeCollection(),
    }


@pytest.fixture
def feed():
    return CostRecordFeed()


@pytest.fixture
def repository(record_collections, feed):
    return CostRecordRepository(record_collections, feed=feed)


@pytest.fixture
def selection_store(config_store):
    return SelectionStore(config_store)


@pytest.fixture
def registry(config_store, selection_store):
    return MarkupRegistry(config_store, selection_store)


@pytest.fixture
def revenue_history(config_store):
    return RevenueHistory(config_store)


@pytest.fixture
def snapshots_collection():
    return FakeCollection()


@pytest.fixture
def markup_service(repository, registry, selection_store, revenue_history, snapshots_collection):
    return MarkupService(
        repository=repository,
        registry=registry,
        selection_store=selection_store,
        revenue_history=revenue_history,
        snapshots_collection=snapshots_collection,
    )
