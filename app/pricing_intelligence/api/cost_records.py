"""
Cost Record API Endpoints
=========================

CRUD for the three cost record sets used by markup blocks.

ENDPOINTS:
- GET    /api/cost-records/{record_set}                 - List records
- POST   /api/cost-records/{record_set}                 - Create a record
- GET    /api/cost-records/{record_set}/{record_id}     - Get a record
- PATCH  /api/cost-records/{record_set}/{record_id}     - Partial update
- PUT    /api/cost-records/{record_set}/{record_id}/active - Activate / deactivate
- DELETE /api/cost-records/{record_set}/{record_id}     - Soft delete (active = false)

record_set is one of: fixed_expenses, payroll_entries, sales_charges
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from app.core.error_handlers import MarkupEngineError
from app.pricing_intelligence.api.dependencies import get_cost_record_repository, get_current_user_id
from app.pricing_intelligence.logic.cost_records import (
    FIXED_EXPENSES,
    PAYROLL_ENTRIES,
    SALES_CHARGES,
    CostRecordRepository,
)
from app.pricing_intelligence.models.markup_schemas import (
    CostRecordUpdate,
    FixedExpenseInput,
    PayrollEntryInput,
    SalesChargeInput,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cost-records", tags=["Cost Records"])

INPUT_MODELS = {
    FIXED_EXPENSES: FixedExpenseInput,
    PAYROLL_ENTRIES: PayrollEntryInput,
    SALES_CHARGES: SalesChargeInput,
}


def _check_record_set(record_set: str) -> str:
    if record_set not in INPUT_MODELS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown record set '{record_set}'. Use one of: {', '.join(INPUT_MODELS)}",
        )
    return record_set


@router.get("/{record_set}", response_model=List[Dict[str, Any]])
async def list_records(
    record_set: str,
    include_inactive: bool = False,
    labor_type: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    _check_record_set(record_set)
    records = await repository.list_records(
        user_id, record_set, include_inactive=include_inactive, labor_type=labor_type
    )
    return [r.model_dump() for r in records]


@router.post("/{record_set}", status_code=201)
async def create_record(
    record_set: str,
    payload: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    _check_record_set(record_set)
    try:
        data: BaseModel = INPUT_MODELS[record_set].model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    record = await repository.create_record(user_id, record_set, data)
    return record.model_dump()


@router.get("/{record_set}/{record_id}")
async def get_record(
    record_set: str,
    record_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    _check_record_set(record_set)
    try:
        record = await repository.get_record(user_id, record_set, record_id)
        return record.model_dump()
    except MarkupEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)


@router.patch("/{record_set}/{record_id}")
async def update_record(
    record_set: str,
    record_id: str,
    update: CostRecordUpdate,
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    _check_record_set(record_set)
    try:
        record = await repository.update_record(user_id, record_set, record_id, update)
        return record.model_dump()
    except MarkupEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)


@router.put("/{record_set}/{record_id}/active")
async def set_record_active(
    record_set: str,
    record_id: str,
    active: bool = Body(..., embed=True),
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    _check_record_set(record_set)
    try:
        record = await repository.set_active(user_id, record_set, record_id, active)
        return record.model_dump()
    except MarkupEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)


@router.delete("/{record_set}/{record_id}")
async def delete_record(
    record_set: str,
    record_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: CostRecordRepository = Depends(get_cost_record_repository),
):
    """Soft delete: the record stays stored with active = false."""
    _check_record_set(record_set)
    try:
        await repository.soft_delete(user_id, record_set, record_id)
        return {"success": True, "record_id": record_id}
    except MarkupEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)
