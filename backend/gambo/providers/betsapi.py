"""
backend/gambo/providers/betsapi.py

Purpose:
    BetsAPI adapter (paid, one token per sport): highest-fidelity live and
    ended events for soccer, basketball, tennis, ice hockey and American
    football, enriched with the free-text event timeline from event/view.

Dependencies:
    - gambo.providers.base
    - gambo.services.event_text_parser
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from gambo.config import credential, settings
from gambo.errors import MalformedPayload, ProviderUnavailable
from gambo.models.game import GameStatus, Sport
from gambo.models.live_match import CanonicalLiveMatch, LiveStats
from gambo.providers.base import LiveScoreProvider, parse_score_string, stat_pair, to_int
from gambo.providers.http_client import ResilientClient
from gambo.providers.periods import numbered_period, soccer_period
from gambo.services.event_text_parser import event_texts, parse_event_lines
from gambo.utils import from_unix
from gambo.utils.clock import Clock

SPORT_IDS = {
    Sport.soccer: 1,
    Sport.basketball: 18,
    Sport.tennis: 13,
    Sport.hockey: 17,
    Sport.football: 16,
}

# time_status: 0 not started, 1 in play, 3 ended, 5 cancelled.
# 2 (to be fixed), 4 (postponed), 6-9 (walkover/interrupted/abandoned/retired)
# and 99 (removed) carry no settleable state and are skipped.
TIME_STATUS = {
    "0": GameStatus.upcoming,
    "1": GameStatus.live,
    "3": GameStatus.finished,
    "5": GameStatus.cancelled,
}

# Soccer timer "tt" → phase
SOCCER_TIMER_PHASES = {"1": "1H", "2": "HT", "3": "2H", "4": "ET"}

# Keeps e-sports and virtual fixtures out of the feed
EXCLUDED_LEAGUE_KEYWORDS = (
    "esoccer", "ebasketball", "efootball", "etennis", "ehockey",
    "cyber", "virtual", "esports", "e-sports",
    "simulated", "fifa", "nba2k", "pes",
)


def is_real_sport(league_name: str | None) -> bool:
    lower = str(league_name or "").lower()
    if not lower:
        return True
    return not any(keyword in lower for keyword in EXCLUDED_LEAGUE_KEYWORDS)


def betsapi_tokens() -> dict[Sport, str]:
    configured = {
        Sport.soccer: credential(settings.BETSAPI_SOCCER_TOKEN),
        Sport.basketball: credential(settings.BETSAPI_BASKETBALL_TOKEN),
        Sport.tennis: credential(settings.BETSAPI_TENNIS_TOKEN),
        Sport.hockey: credential(settings.BETSAPI_HOCKEY_TOKEN),
        Sport.football: credential(settings.BETSAPI_FOOTBALL_TOKEN),
    }
    return {sport: token for sport, token in configured.items() if token}


class BetsAPIProvider(LiveScoreProvider):
    """BetsAPI in-play + ended events; only sports with a configured token are served."""

    name = "betsapi"

    def __init__(
        self,
        tokens: dict[Sport, str],
        *,
        base_url: str | None = None,
        client: ResilientClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(client=client, clock=clock)
        self._tokens = {sport: token for sport, token in tokens.items() if token}
        self.sports = frozenset(self._tokens)
        self._base_url = (base_url or settings.BETSAPI_BASE_URL).rstrip("/")

    async def _results(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        payload = await self._get_json(
            f"{self._base_url}/{path}",
            params=params,
            headers={"Accept": "application/json"},
        )
        if not payload.get("success"):
            error = payload.get("error") or "unsuccessful response"
            if error == "TOO_MANY_REQUESTS":
                self.logger.error("BetsAPI rate limit exceeded: %s", payload.get("error_detail") or error)
            raise ProviderUnavailable(self.name, f"{path}: {error}")
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise MalformedPayload(f"betsapi {path}: results is not a list")
        return [item for item in results if isinstance(item, dict)]

    async def _event_timeline(self, token: str, event: dict[str, Any]) -> dict[str, Any]:
        """Merge event/view's timeline into the in-play event; keep the bare event on failure."""
        try:
            details = await self._results("v1/event/view", {"token": token, "event_id": event.get("id")})
        except (ProviderUnavailable, MalformedPayload, httpx.HTTPError, ValueError) as exc:
            self.logger.debug("betsapi details unavailable for event %s: %s", event.get("id"), exc)
            return event
        if not details:
            return event
        return {**event, "events": details[0].get("events") or []}

    async def fetch_raw(self, sport: Sport) -> list[dict[str, Any]]:
        token = self._tokens[sport]
        params = {"sport_id": SPORT_IDS[sport], "token": token}
        day = self._clock.now().strftime("%Y%m%d")
        inplay, ended = await asyncio.gather(
            self._results("v3/events/inplay", params),
            self._results("v3/events/ended", {**params, "day": day}),
        )
        inplay = [e for e in inplay if is_real_sport((e.get("league") or {}).get("name"))]
        ended = [e for e in ended if is_real_sport((e.get("league") or {}).get("name"))]

        detailed = await self._gather_bounded(
            [self._event_timeline(token, event) for event in inplay],
            settings.PROVIDER_DETAIL_CONCURRENCY,
        )
        return list(detailed) + ended

    # ── raw → canonical ─────────────────────────────────────────────────────

    @staticmethod
    def _period(sport: Sport, status: GameStatus, timer: dict[str, Any]) -> Optional[str]:
        if status == GameStatus.finished:
            return "FT"
        if status != GameStatus.live:
            return None
        if not timer:
            return "LIVE"
        minute = to_int(timer.get("tm"))
        period_code = str(timer.get("tt") or "")
        added = to_int(timer.get("ta")) or None

        if sport == Sport.soccer:
            phase = SOCCER_TIMER_PHASES.get(period_code)
            if phase is None:
                return "LIVE"
            if minute is not None and phase == "1H" and minute > 45:
                minute, added = 45, minute - 45
            elif minute is not None and phase == "2H" and minute > 90:
                minute, added = 90, minute - 90
            return soccer_period(phase, minute, added)
        if sport == Sport.tennis:
            return "LIVE"
        return numbered_period(sport, to_int(period_code), minute)

    @staticmethod
    def _stats(raw_stats: Any) -> Optional[LiveStats]:
        if not isinstance(raw_stats, dict):
            return None
        on_target = stat_pair(raw_stats.get("on_target"))
        off_target = stat_pair(raw_stats.get("off_target"))
        shots = None
        if on_target and off_target:
            shots = on_target.model_copy(
                update={"home": on_target.home + off_target.home, "away": on_target.away + off_target.away}
            )
        stats = LiveStats(
            possession=stat_pair(raw_stats.get("possession_rt")),
            shots=shots,
            shots_on_target=on_target,
            corners=stat_pair(raw_stats.get("corners")),
            fouls=stat_pair(raw_stats.get("fouls")),
            yellow_cards=stat_pair(raw_stats.get("yellowcards")),
            red_cards=stat_pair(raw_stats.get("redcards")),
        )
        return None if stats.is_empty() else stats

    def normalize(self, raw: dict[str, Any], sport: Sport) -> CanonicalLiveMatch | None:
        status = TIME_STATUS.get(str(raw.get("time_status", "")))
        if status is None:
            return None

        score_text = raw.get("ss")
        home_score, away_score = parse_score_string(score_text)
        if score_text and home_score is None:
            raise MalformedPayload(f"betsapi event {raw.get('id')}: bad score {score_text!r}")
        if status == GameStatus.finished and home_score is None:
            raise MalformedPayload(f"betsapi event {raw.get('id')}: ended without score")

        home_team = (raw.get("home") or {}).get("name")
        away_team = (raw.get("away") or {}).get("name")
        if not home_team or not away_team:
            raise MalformedPayload(f"betsapi event {raw.get('id')}: missing team names")

        timer = raw.get("timer") if isinstance(raw.get("timer"), dict) else {}
        texts = event_texts(raw.get("events") or [])
        return CanonicalLiveMatch(
            source=self.name,
            external_id=f"betsapi-{sport.value.lower()}-{raw.get('id')}",
            sport=sport,
            home_team=home_team,
            away_team=away_team,
            league=(raw.get("league") or {}).get("name") or "",
            home_score=home_score,
            away_score=away_score,
            status=status,
            current_period=self._period(sport, status, timer),
            match_minute=to_int(timer.get("tm")) if status == GameStatus.live else None,
            scheduled_at=from_unix(raw.get("time")),
            stats=self._stats(raw.get("stats")),
            events=parse_event_lines(texts),
            raw_events=texts,
        )
