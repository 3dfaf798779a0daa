"""
Shared FastAPI dependencies for the markup engine routers.

The service graph is built once per process on first use; tests replace
get_markup_service / get_cost_record_repository through
app.dependency_overrides.
"""
from typing import Optional

from fastapi import HTTPException, Query, WebSocket

from app.pricing_intelligence.auth import get_current_user_id, verify_access_token
from app.pricing_intelligence.db.collections import (
    fixed_expenses_col,
    markups_col,
    payroll_entries_col,
    sales_charges_col,
    user_configurations_col,
)
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

__all__ = [
    "get_current_user_id",
    "get_cost_record_repository",
    "get_markup_service",
    "get_websocket_user_id",
]

_repository: Optional[CostRecordRepository] = None
_service: Optional[MarkupService] = None


def get_cost_record_repository() -> CostRecordRepository:
    global _repository
    if _repository is None:
        _repository = CostRecordRepository({
            FIXED_EXPENSES: fixed_expenses_col,
            PAYROLL_ENTRIES: payroll_entries_col,
            SALES_CHARGES: sales_charges_col,
        })
    return _repository


def get_markup_service() -> MarkupService:
    global _service
    if _service is None:
        config_store = ConfigurationStore(user_configurations_col)
        selection_store = SelectionStore(config_store)
        _service = MarkupService(
            repository=get_cost_record_repository(),
            registry=MarkupRegistry(config_store, selection_store),
            selection_store=selection_store,
            revenue_history=RevenueHistory(config_store),
            snapshots_collection=markups_col,
        )
    return _service


def get_websocket_user_id(websocket: WebSocket, token: Optional[str] = Query(None)) -> Optional[str]:
    """
    Tenant of a WebSocket connection.

    Browsers cannot set headers on a WebSocket handshake, so the token may
    come as ?token=... as well as in the Authorization header.
    Returns None when the token is missing or invalid.
    """
    if not token:
        auth_header = websocket.headers.get("authorization", "")
        if auth_header.lower().startswith("bearer "):
            token = auth_header[7:].strip()
    if not token:
        return None
    try:
        payload = verify_access_token(token)
    except HTTPException:
        return None
    user_id = payload.get("user_id") or payload.get("_id")
    return str(user_id) if user_id else None
