"""Reconcile canonical live matches with stored games from active bundles.

A stored game matches when both of its team names contain the case-folded
first ``prefix_length`` characters of the live match's team names, within
the same sport. League equality is tried first, then dropped. The matcher
never creates games and only ever sees games referenced by active bundles.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from gambo.config import settings
from gambo.models.game import coerce_sport
from gambo.models.live_match import CanonicalLiveMatch
from gambo.utils.team_matching import fold, prefix_contains

logger = logging.getLogger("gambo.game_matcher")


class GameMatcher:
    def __init__(self, games: Iterable[dict[str, Any]], prefix_length: int | None = None) -> None:
        self._games = list(games)
        self._prefix_length = prefix_length or settings.TEAM_MATCH_PREFIX_LENGTH

    def _teams_match(self, game: dict[str, Any], live: CanonicalLiveMatch) -> bool:
        return prefix_contains(
            game.get("home_team"), live.home_team, self._prefix_length
        ) and prefix_contains(game.get("away_team"), live.away_team, self._prefix_length)

    def candidates(self, live: CanonicalLiveMatch, *, league_scoped: bool) -> list[dict[str, Any]]:
        league = fold(live.league)
        found = []
        for game in self._games:
            if coerce_sport(game.get("sport")) != live.sport:
                continue
            if league_scoped and (not league or fold(game.get("league")) != league):
                continue
            if self._teams_match(game, live):
                found.append(game)
        return found

    def match(self, live: CanonicalLiveMatch) -> Optional[dict[str, Any]]:
        """First stored game for ``live`` (league-scoped, then relaxed), or None."""
        for league_scoped in (True, False):
            found = self.candidates(live, league_scoped=league_scoped)
            if not found:
                continue
            if len(found) > 1:
                logger.warning(
                    "Ambiguous match for %s vs %s (%s, %s): %d candidates %s, using first",
                    live.home_team,
                    live.away_team,
                    live.source,
                    live.external_id,
                    len(found),
                    [str(game.get("_id")) for game in found],
                )
            return found[0]
        logger.debug(
            "No stored game for %s vs %s (%s %s)",
            live.home_team, live.away_team, live.sport.value, live.external_id,
        )
        return None
