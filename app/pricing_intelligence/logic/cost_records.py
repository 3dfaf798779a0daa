"""
Cost record management for fixed expenses, payroll and sales charges.

Records are tenant scoped and never hard deleted: deleting flips `active`
to false. Every write notifies the cost record feed so open editor
sessions can recompute.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel

from app.core.error_handlers import CostRecordNotFoundError
from app.pricing_intelligence.logic.change_feed import CostRecordFeed, cost_record_feed
from app.pricing_intelligence.models.markup_schemas import (
    CostRecordUpdate,
    FixedExpense,
    PayrollEntry,
    SalesCharge,
)

logger = logging.getLogger(__name__)

FIXED_EXPENSES = "fixed_expenses"
PAYROLL_ENTRIES = "payroll_entries"
SALES_CHARGES = "sales_charges"

RECORD_MODELS: Dict[str, Type[BaseModel]] = {
    FIXED_EXPENSES: FixedExpense,
    PAYROLL_ENTRIES: PayrollEntry,
    SALES_CHARGES: SalesCharge,
}

# Fields a partial update may touch, per record set
UPDATABLE_FIELDS: Dict[str, set] = {
    FIXED_EXPENSES: {"name", "value", "active"},
    PAYROLL_ENTRIES: {"name", "base_salary", "cost_per_hour", "total_monthly_hours", "labor_type", "active"},
    SALES_CHARGES: {"name", "value_percentual", "value_fixed", "active"},
}


def _to_object_id(record_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _doc_to_record(record_set: str, doc: Dict[str, Any]):
    model = RECORD_MODELS[record_set]
    data = {k: v for k, v in doc.items() if k not in ("_id", "user_id", "created_at", "updated_at")}
    data["id"] = str(doc["_id"])
    return model.model_validate(data)


class CostRecordRepository:
    def __init__(self, collections: Dict[str, Any], feed: CostRecordFeed = cost_record_feed):
        unknown = set(collections) - set(RECORD_MODELS)
        if unknown:
            raise ValueError(f"Unknown record sets: {sorted(unknown)}")
        self.collections = collections
        self.feed = feed

    def _collection(self, record_set: str):
        if record_set not in self.collections:
            raise ValueError(f"Unknown record set '{record_set}'")
        return self.collections[record_set]

    async def list_records(
        self,
        user_id: str,
        record_set: str,
        include_inactive: bool = False,
        labor_type: Optional[str] = None,
    ) -> List[BaseModel]:
        query: Dict[str, Any] = {"user_id": user_id}
        if not include_inactive:
            query["active"] = True
        if labor_type and record_set == PAYROLL_ENTRIES:
            query["labor_type"] = labor_type

        records = []
        async for doc in self._collection(record_set).find(query).sort("name", 1):
            records.append(_doc_to_record(record_set, doc))
        return records

    async def get_record(self, user_id: str, record_set: str, record_id: str) -> BaseModel:
        obj_id = _to_object_id(record_id)
        doc = None
        if obj_id is not None:
            doc = await self._collection(record_set).find_one({"_id": obj_id, "user_id": user_id})
        if not doc:
            raise CostRecordNotFoundError(f"{record_set}/{record_id}")
        return _doc_to_record(record_set, doc)

    async def create_record(self, user_id: str, record_set: str, payload: BaseModel) -> BaseModel:
        now = datetime.now(timezone.utc)
        doc = {
            **payload.model_dump(),
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        }
        result = await self._collection(record_set).insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Created {record_set} record {result.inserted_id} for user {user_id}")

        self.feed.notify(user_id, record_set)
        return _doc_to_record(record_set, doc)

    async def update_record(
        self,
        user_id: str,
        record_set: str,
        record_id: str,
        update: CostRecordUpdate,
    ) -> BaseModel:
        changes = {
            k: v for k, v in update.model_dump(exclude_unset=True).items()
            if k in UPDATABLE_FIELDS[record_set]
        }
        return await self._apply(user_id, record_set, record_id, changes)

    async def set_active(self, user_id: str, record_set: str, record_id: str, active: bool) -> BaseModel:
        return await self._apply(user_id, record_set, record_id, {"active": active})

    async def soft_delete(self, user_id: str, record_set: str, record_id: str) -> BaseModel:
        return await self.set_active(user_id, record_set, record_id, False)

    async def _apply(self, user_id: str, record_set: str, record_id: str, changes: Dict[str, Any]) -> BaseModel:
        obj_id = _to_object_id(record_id)
        if obj_id is None:
            raise CostRecordNotFoundError(f"{record_set}/{record_id}")

        collection = self._collection(record_set)
        result = await collection.update_one(
            {"_id": obj_id, "user_id": user_id},
            {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
        )
        if result.matched_count == 0:
            raise CostRecordNotFoundError(f"{record_set}/{record_id}")

        self.feed.notify(user_id, record_set)
        return await self.get_record(user_id, record_set, record_id)
