"""
backend/gambo/providers/sportapi7.py

Purpose:
    sportapi7 (RapidAPI) live-events adapter: secondary source for basketball,
    hockey and American football, last resort for soccer. Soccer matches are
    enriched with the structured incidents timeline.

Dependencies:
    - gambo.config
    - gambo.providers.base
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from gambo.config import credential, settings
from gambo.errors import MalformedPayload, ProviderUnavailable
from gambo.models.game import GameStatus, Sport
from gambo.models.live_match import Card, CanonicalLiveMatch, Goal, MatchEvents, Substitution
from gambo.providers.base import LiveScoreProvider, to_int
from gambo.providers.http_client import ResilientClient
from gambo.providers.periods import numbered_period, soccer_period
from gambo.utils import elapsed_minutes, from_unix
from gambo.utils.clock import Clock

SPORT_SLUGS = {
    Sport.soccer: "football",
    Sport.basketball: "basketball",
    Sport.hockey: "ice-hockey",
    Sport.football: "american-football",
}

STATUS_TYPES = {
    "notstarted": GameStatus.upcoming,
    "inprogress": GameStatus.live,
    "finished": GameStatus.finished,
    "canceled": GameStatus.cancelled,
}

SOCCER_STATUS_PHASES = {6: "1H", 7: "2H", 31: "HT", 41: "ET"}
# 14..17 are the running quarters/periods, 13 is used by some feeds for Q1
NUMBERED_STATUS_INDEX = {13: 1, 14: 1, 15: 2, 16: 3, 17: 4}

NO_ADDED_TIME = 999


class SportAPI7Provider(LiveScoreProvider):
    name = "sportapi7"
    sports = frozenset(SPORT_SLUGS)

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        host: str | None = None,
        client: ResilientClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(client=client, clock=clock)
        self._api_key = credential(api_key)
        self._base_url = (base_url or settings.SPORTAPI7_BASE_URL).rstrip("/")
        self._host = host or settings.SPORTAPI7_HOST

    def _headers(self) -> dict[str, str]:
        return {"x-rapidapi-host": self._host, "x-rapidapi-key": self._api_key}

    async def _incidents(self, event: dict[str, Any]) -> dict[str, Any]:
        try:
            payload = await self._get_json(
                f"{self._base_url}/api/v1/event/{event.get('id')}/incidents",
                headers=self._headers(),
            )
        except (ProviderUnavailable, MalformedPayload, httpx.HTTPError, ValueError) as exc:
            self.logger.debug("sportapi7 incidents unavailable for event %s: %s", event.get("id"), exc)
            return event
        return {**event, "incidents": payload.get("incidents") or []}

    async def fetch_raw(self, sport: Sport) -> list[dict[str, Any]]:
        payload = await self._get_json(
            f"{self._base_url}/api/v1/sport/{SPORT_SLUGS[sport]}/events/live",
            headers=self._headers(),
        )
        events = payload.get("events") or []
        if not isinstance(events, list):
            raise MalformedPayload("sportapi7 live events: events is not a list")
        events = [e for e in events if isinstance(e, dict)]
        if sport != Sport.soccer:
            return events

        wanted = [e for e in events if ((e.get("status") or {}).get("type")) in ("inprogress", "finished")]
        others = [e for e in events if e not in wanted]
        enriched = await self._gather_bounded(
            [self._incidents(event) for event in wanted],
            settings.PROVIDER_DETAIL_CONCURRENCY,
        )
        return list(enriched) + others

    def _period(self, sport: Sport, code: Optional[int], minute: Optional[int]) -> str:
        if sport == Sport.soccer:
            phase = SOCCER_STATUS_PHASES.get(code or 0)
            return soccer_period(phase, minute) if phase else "LIVE"
        index = NUMBERED_STATUS_INDEX.get(code or 0)
        if sport == Sport.hockey and index == 4:
            index = None
        return numbered_period(sport, index, minute)

    @staticmethod
    def _incident_events(incidents: list[Any], home_team: str, away_team: str) -> MatchEvents:
        events = MatchEvents()
        for inc in incidents:
            if not isinstance(inc, dict):
                continue
            minute = to_int(inc.get("time"))
            if minute is None:
                continue
            team = home_team if inc.get("isHome") else away_team
            added = to_int(inc.get("addedTime"))
            extra = added if added and added != NO_ADDED_TIME else None
            kind = inc.get("incidentType")
            if kind == "goal":
                events.goals.append(
                    Goal(
                        team=team,
                        player=(inc.get("player") or {}).get("name") or team,
                        minute=minute,
                        extra_time=extra,
                        assist=(inc.get("assist1") or inc.get("assist") or {}).get("name"),
                    )
                )
            elif kind == "card":
                events.cards.append(
                    Card(
                        team=team,
                        player=(inc.get("player") or {}).get("name") or inc.get("playerName") or team,
                        minute=minute,
                        extra_time=extra,
                        kind="yellow" if inc.get("incidentClass") == "yellow" else "red",
                    )
                )
            elif kind == "substitution":
                events.substitutions.append(
                    Substitution(
                        team=team,
                        player_in=(inc.get("playerIn") or {}).get("name"),
                        player_out=(inc.get("playerOut") or {}).get("name"),
                        minute=minute,
                        extra_time=extra,
                    )
                )
        return events

    def normalize(self, raw: dict[str, Any], sport: Sport) -> CanonicalLiveMatch | None:
        status_block = raw.get("status") or {}
        status = STATUS_TYPES.get(str(status_block.get("type") or ""))
        if status is None:
            return None

        home_team = (raw.get("homeTeam") or {}).get("name")
        away_team = (raw.get("awayTeam") or {}).get("name")
        if not home_team or not away_team:
            raise MalformedPayload(f"sportapi7 event {raw.get('id')}: missing team names")

        home_block = raw.get("homeScore") or {}
        away_block = raw.get("awayScore") or {}
        home_score = to_int(home_block.get("current", home_block.get("display")))
        away_score = to_int(away_block.get("current", away_block.get("display")))
        if status == GameStatus.finished and (home_score is None or away_score is None):
            raise MalformedPayload(f"sportapi7 event {raw.get('id')}: finished without score")

        current_period: Optional[str] = None
        minute: Optional[int] = None
        if status == GameStatus.live:
            period_start = from_unix((raw.get("time") or {}).get("currentPeriodStartTimestamp"))
            if period_start is not None:
                minute = max(0, elapsed_minutes(period_start, self._clock.now()))
            current_period = self._period(sport, to_int(status_block.get("code")), minute)
        elif status == GameStatus.finished:
            current_period = "FT"

        tournament = raw.get("tournament") or {}
        league = tournament.get("name") or (tournament.get("uniqueTournament") or {}).get("name") or ""
        return CanonicalLiveMatch(
            source=self.name,
            external_id=f"sportapi7-{raw.get('id')}",
            sport=sport,
            home_team=home_team,
            away_team=away_team,
            league=league,
            home_score=home_score,
            away_score=away_score,
            status=status,
            current_period=current_period,
            match_minute=minute,
            scheduled_at=from_unix(raw.get("startTimestamp")),
            events=self._incident_events(raw.get("incidents") or [], home_team, away_team),
        )
