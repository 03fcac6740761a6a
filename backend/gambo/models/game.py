"""Stored game, pick and bundle vocabulary.

Documents live in MongoDB (``games``, ``bundle_picks``, ``bundles``) and are
handled as plain dicts; these enums and models pin down the field values.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Sport(str, Enum):
    soccer = "SOCCER"
    basketball = "BASKETBALL"
    hockey = "HOCKEY"
    football = "FOOTBALL"  # American football
    tennis = "TENNIS"


class GameStatus(str, Enum):
    upcoming = "UPCOMING"
    live = "LIVE"
    finished = "FINISHED"
    cancelled = "CANCELLED"


TERMINAL_STATUSES = {GameStatus.finished, GameStatus.cancelled}


class PickResult(str, Enum):
    win = "WIN"
    loss = "LOSS"
    push = "PUSH"


class BetType(str, Enum):
    h2h = "h2h"
    double_chance = "doubleChance"
    totals = "totals"
    btts = "btts"
    spread = "spread"


class BundleResult(str, Enum):
    win = "WIN"
    loss = "LOSS"


class BundlePerformance(BaseModel):
    """Derived per-bundle aggregate, stored under ``bundles.performance``."""
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    pending: int = 0
    result: Optional[BundleResult] = None
    actual_return: Optional[float] = None  # -1.0 = stake lost, None = unresolved
    updated_at: Optional[datetime] = None

    def same_outcome(self, other: Optional[dict]) -> bool:
        """True when a stored performance dict already carries these numbers."""
        if not other:
            return False
        return (
            other.get("total_games") == self.total_games
            and other.get("wins") == self.wins
            and other.get("losses") == self.losses
            and other.get("pushes") == self.pushes
            and other.get("pending", 0) == self.pending
            and other.get("result") == (self.result.value if self.result else None)
            and other.get("actual_return") == self.actual_return
        )


def coerce_sport(value) -> Optional[Sport]:
    try:
        return Sport(str(value or "").upper())
    except ValueError:
        return None


def coerce_status(value) -> Optional[GameStatus]:
    try:
        return GameStatus(str(value or "").upper())
    except ValueError:
        return None
