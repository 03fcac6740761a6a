"""Administrative correction endpoints for games the live feed never resolved."""

from fastapi import APIRouter, HTTPException, Query

from gambo.errors import GameNotFound, InvalidTransition
from gambo.models.settlement import AdminActionResult, ScoreCorrection, StaleGame
from gambo.services.settlement_admin_service import SettlementAdminService

router = APIRouter(prefix="/api/admin/settlement", tags=["admin-settlement"])


def _service() -> SettlementAdminService:
    return SettlementAdminService()


@router.get("/stale-games", response_model=list[StaleGame])
async def list_stale_games():
    """Active-bundle games past the coverage-gap threshold without a score."""
    return await _service().find_stale_games()


@router.post("/games/{game_id}/cancel", response_model=AdminActionResult)
async def cancel_game(game_id: str, force: bool = Query(False)):
    try:
        return await _service().cancel_stale_game(game_id, force=force)
    except GameNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/games/{game_id}/revert", response_model=AdminActionResult)
async def revert_game(game_id: str):
    try:
        return await _service().revert_cancelled_game(game_id)
    except GameNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/games/{game_id}/correct", response_model=AdminActionResult)
async def correct_game(game_id: str, body: ScoreCorrection):
    try:
        return await _service().correct_game_result(game_id, body.home_score, body.away_score)
    except GameNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
