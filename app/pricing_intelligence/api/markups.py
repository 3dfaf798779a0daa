"""
Markup API Endpoints
====================

Markup blocks (pricing scenarios), their cost record selections and
averaging periods, revenue history, publishing and the price simulator.

ENDPOINTS:
- GET    /api/markups/blocks                      - List blocks with computed figures
- POST   /api/markups/blocks                      - Create a block
- GET    /api/markups/blocks/{block_id}           - Get a block
- PATCH  /api/markups/blocks/{block_id}           - Rename / desired profit / period
- DELETE /api/markups/blocks/{block_id}           - Delete a block
- GET    /api/markups/blocks/{block_id}/selection - Saved cost record selection
- PUT    /api/markups/blocks/{block_id}/selection - Save a selection (merged)
- GET    /api/markups/blocks/{block_id}/period    - Averaging period
- PUT    /api/markups/blocks/{block_id}/period    - Save the averaging period
- GET    /api/markups/blocks/{block_id}/calculation - Calculate one block
- POST   /api/markups/publish                     - Publish markup snapshots
- POST   /api/markups/simulate                    - Suggested price for a recipe
- GET    /api/markups/revenue                     - Monthly revenue history
- POST   /api/markups/revenue                     - Append a month of revenue
- WS     /api/markups/blocks/{block_id}/editor    - Live selection editor

Errors for the sub-recipe block are 409, unknown blocks 404 and storage
failures 503.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect

from app.core.error_handlers import MarkupEngineError, ReservedScenarioError
from app.pricing_intelligence.api.dependencies import (
    get_current_user_id,
    get_markup_service,
    get_websocket_user_id,
)
from app.pricing_intelligence.logic.editor_session import SelectionEditorSession
from app.pricing_intelligence.logic.markup_registry import is_sub_recipe
from app.pricing_intelligence.logic.markup_service import MarkupService
from app.pricing_intelligence.models.markup_schemas import (
    BlockCalculation,
    BlockListResponse,
    MarkupBlock,
    MarkupBlockCreate,
    MarkupBlockUpdate,
    PeriodFilter,
    PublishResponse,
    RevenueEntry,
    RevenueEntryInput,
    SelectionResponse,
    SelectionUpdate,
    SimulationRequest,
    SimulationResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/markups", tags=["Markups"])


def http_error(exc: MarkupEngineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.user_message)


# ============================================================================
# BLOCKS
# ============================================================================

@router.get("/blocks", response_model=BlockListResponse)
async def list_blocks(
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """
    List the user's markup blocks, sub-recipe block last, each with its
    freshly calculated figures and ideal markup.
    """
    try:
        return await service.recalculate_all(user_id)
    except MarkupEngineError as e:
        raise http_error(e)


@router.post("/blocks", response_model=BlockCalculation, status_code=201)
async def create_block(
    request: MarkupBlockCreate,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """Create a block with every active cost record selected."""
    try:
        active_ids = await service.active_record_ids(user_id)
        block = await service.registry.create_block(user_id, request, active_ids)
        return await service.calculate_block(user_id, block)
    except MarkupEngineError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/blocks/{block_id}", response_model=MarkupBlock)
async def get_block(
    block_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        return await service.registry.get_block(user_id, block_id)
    except MarkupEngineError as e:
        raise http_error(e)


@router.patch("/blocks/{block_id}", response_model=MarkupBlock)
async def update_block(
    block_id: str,
    request: MarkupBlockUpdate,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        return await service.registry.update_block(user_id, block_id, request)
    except MarkupEngineError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/blocks/{block_id}")
async def delete_block(
    block_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        await service.registry.delete_block(user_id, block_id)
        return {"success": True, "block_id": block_id}
    except MarkupEngineError as e:
        raise http_error(e)


# ============================================================================
# SELECTION AND PERIOD
# ============================================================================

@router.get("/blocks/{block_id}/selection", response_model=SelectionResponse)
async def get_selection(
    block_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        await service.registry.get_block(user_id, block_id)
        if is_sub_recipe(block_id):
            return SelectionResponse(block_id=block_id, states={})
        states = await service.selection_store.load(user_id, block_id)
        return SelectionResponse(block_id=block_id, states=states)
    except MarkupEngineError as e:
        raise http_error(e)


@router.put("/blocks/{block_id}/selection", response_model=SelectionResponse)
async def save_selection(
    block_id: str,
    request: SelectionUpdate,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """
    Save a selection. Saved entries for records that are not in
    visible_record_ids (default: the keys of states) are kept as they were.
    """
    try:
        if is_sub_recipe(block_id):
            raise ReservedScenarioError(block_id)
        await service.registry.get_block(user_id, block_id)
        merged = await service.selection_store.save(
            user_id,
            block_id,
            request.states,
            record_id_universe=request.visible_record_ids,
        )
        return SelectionResponse(block_id=block_id, states=merged)
    except MarkupEngineError as e:
        raise http_error(e)


@router.get("/blocks/{block_id}/period", response_model=PeriodFilter)
async def get_period(
    block_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        return await service.registry.load_period(user_id, block_id)
    except MarkupEngineError as e:
        raise http_error(e)


@router.put("/blocks/{block_id}/period", response_model=PeriodFilter)
async def save_period(
    block_id: str,
    period: PeriodFilter,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        block = await service.registry.update_period(user_id, block_id, period)
        return block.period
    except MarkupEngineError as e:
        raise http_error(e)


@router.get("/blocks/{block_id}/calculation", response_model=BlockCalculation)
async def calculate_block(
    block_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        block = await service.registry.get_block(user_id, block_id)
        return await service.calculate_block(user_id, block)
    except MarkupEngineError as e:
        raise http_error(e)


# ============================================================================
# PUBLISHING AND SIMULATION
# ============================================================================

@router.post("/publish", response_model=PublishResponse)
async def publish_markups(
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """Recalculate every block and replace its published markup snapshot."""
    try:
        return await service.publish_markups(user_id)
    except MarkupEngineError as e:
        raise http_error(e)


@router.post("/simulate", response_model=SimulationResult)
async def simulate_pricing(
    request: SimulationRequest,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """
    Suggested sale price, gross and net profit for a recipe cost breakdown
    priced with the given block.
    """
    try:
        return await service.simulate(user_id, request)
    except MarkupEngineError as e:
        raise http_error(e)


# ============================================================================
# REVENUE HISTORY
# ============================================================================

@router.get("/revenue", response_model=List[RevenueEntry])
async def list_revenue(
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        return await service.revenue_history.list_entries(user_id)
    except MarkupEngineError as e:
        raise http_error(e)


@router.post("/revenue", response_model=RevenueEntry, status_code=201)
async def append_revenue(
    request: RevenueEntryInput,
    user_id: str = Depends(get_current_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    try:
        return await service.revenue_history.append(user_id, request.month, request.amount)
    except MarkupEngineError as e:
        raise http_error(e)


# ============================================================================
# LIVE EDITOR
# ============================================================================

async def _handle_editor_message(session: SelectionEditorSession, message: Dict[str, Any]) -> bool:
    """Apply one client message; returns False when the client asked to close."""
    action = message.get("action")
    if action == "toggle":
        session.toggle(str(message["record_id"]), bool(message.get("included", True)))
    elif action == "set_all":
        session.set_all(bool(message.get("included", True)), message.get("record_ids"))
    elif action == "recompute":
        await session.recompute()
    elif action == "save":
        await session.save()
    elif action == "close":
        return False
    else:
        await session.push({"type": "error", "message": f"Unknown action '{action}'"})
    return True


@router.websocket("/blocks/{block_id}/editor")
async def selection_editor(
    websocket: WebSocket,
    block_id: str,
    user_id: Optional[str] = Depends(get_websocket_user_id),
    service: MarkupService = Depends(get_markup_service),
):
    """
    Live cost record selection editor.

    CLIENT MESSAGES:
    - {"action": "toggle", "record_id": "...", "included": true}
    - {"action": "set_all", "included": false}
    - {"action": "recompute"} / {"action": "save"} / {"action": "close"}

    SERVER MESSAGES:
    - {"type": "calculation", "data": BlockCalculation}
    - {"type": "saved", "states": {...}}
    - {"type": "error", "message": "..."}
    """
    await websocket.accept()
    if user_id is None:
        await websocket.close(code=1008)
        return

    session: Optional[SelectionEditorSession] = None
    try:
        block = await service.registry.get_block(user_id, block_id)
        session = SelectionEditorSession(user_id, block, service, push=websocket.send_json)
        await session.open()

        while True:
            message = await websocket.receive_json()
            try:
                if not await _handle_editor_message(session, message):
                    break
            except MarkupEngineError as e:
                await websocket.send_json({"type": "error", "message": e.user_message})
            except (KeyError, TypeError, ValueError) as e:
                await websocket.send_json({"type": "error", "message": f"Malformed message: {e}"})
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"Selection editor for block {block_id} disconnected")
    except MarkupEngineError as e:
        await websocket.send_json({"type": "error", "message": e.user_message})
        await websocket.close(code=4000 + e.status_code)
    finally:
        if session is not None:
            session.close()
