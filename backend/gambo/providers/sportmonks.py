"""
backend/gambo/providers/sportmonks.py

Purpose:
    Sportmonks v3 in-play livescores adapter, the soccer fallback behind
    BetsAPI. Teams come from participant meta locations, scores from the
    CURRENT score rows, and the clock from the open period.

Dependencies:
    - gambo.config
    - gambo.providers.base
"""

from __future__ import annotations

from typing import Any, Optional

from gambo.config import credential, settings
from gambo.errors import MalformedPayload
from gambo.models.game import GameStatus, Sport
from gambo.models.live_match import (
    Card,
    CanonicalLiveMatch,
    Goal,
    LiveStats,
    MatchEvents,
    StatPair,
    Substitution,
)
from gambo.providers.base import LiveScoreProvider, to_int
from gambo.providers.http_client import ResilientClient
from gambo.providers.periods import soccer_period
from gambo.utils import parse_utc
from gambo.utils.clock import Clock

LIVESCORE_INCLUDES = "participants;league;scores;periods;events;statistics;state"

STATE_STATUS = {
    "NS": GameStatus.upcoming,
    "LIVE": GameStatus.live,
    "INPLAY_1ST_HALF": GameStatus.live,
    "INPLAY_2ND_HALF": GameStatus.live,
    "HT": GameStatus.live,
    "ET": GameStatus.live,
    "INPLAY_ET": GameStatus.live,
    "BREAK": GameStatus.live,
    "INPLAY_PENALTIES": GameStatus.live,
    "FT": GameStatus.finished,
    "AET": GameStatus.finished,
    "FT_PEN": GameStatus.finished,
    "CANCL": GameStatus.cancelled,
    "ABAN": GameStatus.cancelled,
    "POSTP": GameStatus.cancelled,
}

# Period type ids: 1 first half, 2 second half, 3 extra time, 5 penalties
PERIOD_PHASES = {1: "1H", 2: "2H", 3: "ET", 5: "PEN"}

# Event type ids
GOAL_TYPES = {14, 16}  # goal, penalty
OWN_GOAL_TYPE = 15
YELLOW_CARD_TYPE = 19
RED_CARD_TYPES = {20, 21}  # red, second yellow
SUBSTITUTION_TYPE = 18

# Statistic type id → LiveStats field
STATISTIC_FIELDS = {
    45: "possession",
    42: "shots",
    86: "shots_on_target",
    34: "corners",
    56: "fouls",
    84: "yellow_cards",
    83: "red_cards",
}


class SportmonksLiveProvider(LiveScoreProvider):
    name = "sportmonks"
    sports = frozenset({Sport.soccer})

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        client: ResilientClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(client=client, clock=clock)
        self._api_key = credential(api_key)
        self._base_url = (base_url or settings.SPORTMONKS_BASE_URL).rstrip("/")

    async def fetch_raw(self, sport: Sport) -> list[dict[str, Any]]:
        payload = await self._get_json(
            f"{self._base_url}/livescores/inplay",
            params={"include": LIVESCORE_INCLUDES},
            headers={"Authorization": self._api_key, "Accept": "application/json"},
        )
        data = payload.get("data") or []
        if not isinstance(data, list):
            raise MalformedPayload("sportmonks livescores: data is not a list")
        return [row for row in data if isinstance(row, dict)]

    @staticmethod
    def _sides(raw: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        home: dict[str, Any] = {}
        away: dict[str, Any] = {}
        for participant in raw.get("participants") or []:
            location = str(((participant or {}).get("meta") or {}).get("location") or "").lower()
            if location == "home":
                home = participant
            elif location == "away":
                away = participant
        return home, away

    @staticmethod
    def _current_scores(raw: dict[str, Any]) -> tuple[Optional[int], Optional[int]]:
        home_score: Optional[int] = None
        away_score: Optional[int] = None
        for row in raw.get("scores") or []:
            if str((row or {}).get("description") or "").upper() != "CURRENT":
                continue
            score = row.get("score") or {}
            side = str(score.get("participant") or "").lower()
            if side == "home":
                home_score = to_int(score.get("goals"))
            elif side == "away":
                away_score = to_int(score.get("goals"))
        return home_score, away_score

    @staticmethod
    def _active_period(raw: dict[str, Any]) -> dict[str, Any] | None:
        for period in raw.get("periods") or []:
            if isinstance(period, dict) and period.get("ended") is None:
                return period
        return None

    def _clock_state(self, state: str, raw: dict[str, Any]) -> tuple[Optional[str], Optional[int]]:
        if state == "HT":
            return soccer_period("HT"), None
        if state == "INPLAY_PENALTIES":
            return soccer_period("PEN"), None
        if state == "BREAK":
            return "LIVE", None
        period = self._active_period(raw)
        minute = to_int((period or {}).get("minutes"))
        if state in ("ET", "INPLAY_ET"):
            return soccer_period("ET", minute), minute
        if period is None:
            return "LIVE", None
        phase = PERIOD_PHASES.get(to_int(period.get("type_id")) or 0)
        if phase is None:
            return "LIVE", minute
        added = to_int(period.get("time_added")) if period.get("ticking") else None
        return soccer_period(phase, minute, added or None), minute

    @staticmethod
    def _stats(raw: dict[str, Any], home_id: Any, away_id: Any) -> Optional[LiveStats]:
        values: dict[str, dict[str, int]] = {}
        for row in raw.get("statistics") or []:
            field = STATISTIC_FIELDS.get(to_int((row or {}).get("type_id")) or 0)
            value = to_int(((row or {}).get("data") or {}).get("value"))
            if field is None or value is None:
                continue
            location = str(row.get("location") or "").lower()
            if not location:
                pid = row.get("participant_id")
                location = "home" if pid == home_id else "away" if pid == away_id else ""
            if location in ("home", "away"):
                values.setdefault(field, {})[location] = value
        pairs = {
            field: StatPair(**sides)
            for field, sides in values.items()
            if "home" in sides and "away" in sides
        }
        if not pairs:
            return None
        return LiveStats(**pairs)

    @staticmethod
    def _events(raw: dict[str, Any], home: dict[str, Any], away: dict[str, Any]) -> MatchEvents:
        names = {home.get("id"): home.get("name") or "", away.get("id"): away.get("name") or ""}
        events = MatchEvents()
        for row in raw.get("events") or []:
            if not isinstance(row, dict):
                continue
            minute = to_int(row.get("minute"))
            if minute is None:
                continue
            type_id = to_int(row.get("type_id"))
            team = names.get(row.get("participant_id"), "Unknown")
            player = row.get("player_name") or team
            extra = to_int(row.get("extra_minute")) or None
            if type_id in GOAL_TYPES or type_id == OWN_GOAL_TYPE:
                events.goals.append(
                    Goal(
                        team=team,
                        player=player,
                        minute=minute,
                        extra_time=extra,
                        assist=row.get("related_player_name") if type_id in GOAL_TYPES else None,
                    )
                )
            elif type_id == YELLOW_CARD_TYPE or type_id in RED_CARD_TYPES:
                events.cards.append(
                    Card(
                        team=team,
                        player=player,
                        minute=minute,
                        extra_time=extra,
                        kind="yellow" if type_id == YELLOW_CARD_TYPE else "red",
                    )
                )
            elif type_id == SUBSTITUTION_TYPE:
                events.substitutions.append(
                    Substitution(
                        team=team,
                        player_in=row.get("player_name"),
                        player_out=row.get("related_player_name"),
                        minute=minute,
                        extra_time=extra,
                    )
                )
        return events

    def normalize(self, raw: dict[str, Any], sport: Sport) -> CanonicalLiveMatch | None:
        state = str(((raw.get("state") or {}).get("state")) or raw.get("state_code") or "").upper()
        status = STATE_STATUS.get(state)
        if status is None:
            return None

        home, away = self._sides(raw)
        if not home.get("name") or not away.get("name"):
            raise MalformedPayload(f"sportmonks fixture {raw.get('id')}: missing participants")

        home_score, away_score = self._current_scores(raw)
        if status == GameStatus.finished and (home_score is None or away_score is None):
            raise MalformedPayload(f"sportmonks fixture {raw.get('id')}: finished without score")

        current_period: Optional[str] = None
        minute: Optional[int] = None
        if status == GameStatus.live:
            current_period, minute = self._clock_state(state, raw)
        elif status == GameStatus.finished:
            current_period = "FT"

        return CanonicalLiveMatch(
            source=self.name,
            external_id=f"sportmonks-{raw.get('id')}",
            sport=sport,
            home_team=home["name"],
            away_team=away["name"],
            league=str((raw.get("league") or {}).get("name") or ""),
            home_score=home_score,
            away_score=away_score,
            status=status,
            current_period=current_period,
            match_minute=minute,
            scheduled_at=parse_utc(raw["starting_at"]) if raw.get("starting_at") else None,
            stats=self._stats(raw, home.get("id"), away.get("id")),
            events=self._events(raw, home, away),
        )
