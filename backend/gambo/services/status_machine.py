"""
backend/gambo/services/status_machine.py

Purpose:
    Forward-only game lifecycle. Two drivers share one transition table:
    the live feed (a matched canonical match overwrites status, scores and
    period) and a wall-clock fallback for games no provider covers.

Rules:
    - UPCOMING → LIVE → FINISHED, (UPCOMING | LIVE) → CANCELLED,
      UPCOMING → FINISHED when a pass misses the whole match.
    - FINISHED / CANCELLED are terminal; the only feed write a terminal game
      accepts is the first score for a clock-finished game.
    - Returned dicts are ``$set`` payloads; None means "nothing to write".

Dependencies:
    - gambo.models
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from gambo.config import settings
from gambo.errors import InvalidTransition
from gambo.models.game import TERMINAL_STATUSES, GameStatus, Sport, coerce_sport, coerce_status
from gambo.models.live_match import CanonicalLiveMatch
from gambo.utils import elapsed_minutes, ensure_utc

TRANSITIONS: dict[GameStatus, frozenset[GameStatus]] = {
    GameStatus.upcoming: frozenset({GameStatus.upcoming, GameStatus.live, GameStatus.finished, GameStatus.cancelled}),
    GameStatus.live: frozenset({GameStatus.live, GameStatus.finished, GameStatus.cancelled}),
    GameStatus.finished: frozenset(),
    GameStatus.cancelled: frozenset(),
}

# Minutes per quarter / period for clock synthesis
CLOCK_SEGMENTS: dict[Sport, tuple[str, int, int]] = {
    Sport.basketball: ("Q", 12, 4),
    Sport.football: ("Q", 15, 4),
    Sport.hockey: ("P", 20, 3),
}


def can_transition(current: GameStatus, target: GameStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: GameStatus, target: GameStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)


def has_final_score(game: dict[str, Any]) -> bool:
    return game.get("home_score") is not None and game.get("away_score") is not None


def clock_period(sport: Sport, minutes: int) -> str:
    """Synthesized period text for a game ``minutes`` after kickoff (0 < minutes < finish)."""
    m = minutes
    if sport == Sport.soccer:
        if m <= 45:
            return f"First Half - {m}'"
        if m <= 50:
            return "Halftime"
        if m <= 90:
            return f"Second Half - {m - 45}'"
        return f"Extra Time - {m - 90}'"
    segment = CLOCK_SEGMENTS.get(sport)
    if segment is None:
        return "LIVE"
    prefix, length, count = segment
    index = min(math.ceil(m / length), count)
    minute = m % length or length
    return f"{prefix}{index} - {minute}'"


def _changed(game: dict[str, Any], fields: dict[str, Any]) -> bool:
    return any(game.get(key) != value for key, value in fields.items())


def is_feed_noise(live: CanonicalLiveMatch) -> bool:
    """A "LIVE" listing with neither score nor period: pre-match noise, not coverage."""
    return live.status == GameStatus.live and not live.has_score and not live.current_period


def feed_update(game: dict[str, Any], live: CanonicalLiveMatch) -> Optional[dict[str, Any]]:
    """Fields to write for a game that a canonical match was reconciled to."""
    if is_feed_noise(live):
        return None

    current = coerce_status(game.get("status")) or GameStatus.upcoming
    if current in TERMINAL_STATUSES:
        first_score = (
            current == GameStatus.finished
            and live.status == GameStatus.finished
            and live.has_score
            and not has_final_score(game)
        )
        if not first_score:
            return None
    elif not can_transition(current, live.status):
        return None

    fields: dict[str, Any] = {"status": live.status.value}
    if live.status in (GameStatus.live, GameStatus.finished):
        fields["home_score"] = live.home_score if live.home_score is not None else 0
        fields["away_score"] = live.away_score if live.away_score is not None else 0
    if live.current_period is not None:
        fields["current_period"] = live.current_period
    if live.match_minute is not None:
        fields["match_minute"] = live.match_minute
    if live.stats is not None:
        fields["live_stats"] = live.stats.model_dump(exclude_none=True)
    events = live.events.model_dump(exclude_none=True)
    if any(events.values()):
        fields["events"] = events

    if not _changed(game, fields):
        return None
    fields["live_source"] = live.source
    fields["coverage_gap"] = False
    return fields


def clock_update(game: dict[str, Any], now: datetime) -> Optional[dict[str, Any]]:
    """Time-driven fallback for a game with no feed coverage this pass."""
    current = coerce_status(game.get("status")) or GameStatus.upcoming
    if current in TERMINAL_STATUSES:
        return None
    scheduled_at = game.get("scheduled_at")
    if not isinstance(scheduled_at, datetime):
        return None
    sport = coerce_sport(game.get("sport"))
    if sport is None:
        return None

    minutes = elapsed_minutes(ensure_utc(scheduled_at), now)
    if minutes >= settings.SETTLEMENT_FINISH_AFTER_MINUTES:
        fields = {"status": GameStatus.finished.value, "current_period": "FT"}
    elif minutes > 0:
        fields = {"status": GameStatus.live.value, "current_period": clock_period(sport, minutes)}
    else:
        return None

    check_transition(current, GameStatus(fields["status"]))
    if not _changed(game, fields):
        return None
    return fields


def is_coverage_gap(game: dict[str, Any], now: datetime) -> bool:
    """FINISHED (or still LIVE) with no score long after the clock finished it."""
    if coerce_status(game.get("status")) not in (GameStatus.finished, GameStatus.live):
        return False
    if has_final_score(game):
        return False
    scheduled_at = game.get("scheduled_at")
    if not isinstance(scheduled_at, datetime):
        return False
    threshold = settings.SETTLEMENT_FINISH_AFTER_MINUTES + settings.COVERAGE_GAP_GRACE_MINUTES
    return elapsed_minutes(ensure_utc(scheduled_at), now) >= threshold
