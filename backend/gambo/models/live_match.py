"""Canonical live-match shape shared by every provider adapter.

Transient only: built per pass (or read back from the live-score cache) and
never persisted as-is. Absent statistics stay ``None`` and are dropped on
serialization; a zero is only ever a real zero.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from gambo.models.game import GameStatus, Sport


class StatPair(BaseModel):
    home: int
    away: int


class LiveStats(BaseModel):
    possession: Optional[StatPair] = None
    shots: Optional[StatPair] = None
    shots_on_target: Optional[StatPair] = None
    corners: Optional[StatPair] = None
    fouls: Optional[StatPair] = None
    yellow_cards: Optional[StatPair] = None
    red_cards: Optional[StatPair] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class Goal(BaseModel):
    team: str
    player: str  # team name stands in when the feed has no scorer
    minute: int
    extra_time: Optional[int] = None
    assist: Optional[str] = None


class Card(BaseModel):
    team: str
    player: str
    minute: int
    extra_time: Optional[int] = None
    kind: Literal["yellow", "red"]


class Substitution(BaseModel):
    team: str
    player_in: Optional[str] = None
    player_out: Optional[str] = None
    minute: int
    extra_time: Optional[int] = None


class MatchEvents(BaseModel):
    goals: list[Goal] = Field(default_factory=list)
    cards: list[Card] = Field(default_factory=list)
    substitutions: list[Substitution] = Field(default_factory=list)


class CanonicalLiveMatch(BaseModel):
    source: str
    external_id: str
    sport: Sport
    home_team: str
    away_team: str
    league: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: GameStatus
    current_period: Optional[str] = None
    match_minute: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    stats: Optional[LiveStats] = None
    events: MatchEvents = Field(default_factory=MatchEvents)
    raw_events: list[str] = Field(default_factory=list)

    @property
    def has_score(self) -> bool:
        return self.home_score is not None and self.away_score is not None
