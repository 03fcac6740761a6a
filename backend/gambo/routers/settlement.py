"""Trigger surface for one settlement pass."""

from fastapi import APIRouter

from gambo.models.settlement import PassSummary
from gambo.workers.settlement_runner import run_settlement_pass

router = APIRouter(prefix="/api/settlement", tags=["settlement"])


@router.post("/run", response_model=PassSummary)
async def run_pass():
    """Fetch live scores, progress statuses, settle picks and re-aggregate bundles."""
    return await run_settlement_pass()
