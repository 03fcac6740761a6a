"""Pass summary returned by the settlement trigger surfaces."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PassSummary(BaseModel):
    games_updated_by_feed: int = 0
    games_updated_by_clock: int = 0
    picks_settled: int = 0
    bundles_updated: int = 0
    unmatched_matches: int = 0
    coverage_gaps: int = 0
    provider_counts: dict[str, int] = Field(default_factory=dict)
    cached: bool = False
    started_at: Optional[datetime] = None
    duration_ms: float = 0.0


class StaleGame(BaseModel):
    id: str
    sport: str
    home_team: str
    away_team: str
    league: str = ""
    status: str
    scheduled_at: datetime
    minutes_since_kickoff: int


class AdminActionResult(BaseModel):
    game_id: str
    status: str
    picks_updated: int
    bundles_updated: int


class ScoreCorrection(BaseModel):
    home_score: int = Field(ge=0)
    away_score: int = Field(ge=0)
