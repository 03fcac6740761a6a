"""
backend/tests/test_game_matcher.py

Purpose:
    Canonical live match → stored game reconciliation (prefix containment,
    league-first then relaxed, sport-scoped, first hit on ambiguity).
"""

from __future__ import annotations

import logging

from gambo.models.game import GameStatus, Sport
from gambo.models.live_match import CanonicalLiveMatch
from gambo.services.game_matcher import GameMatcher

GAMES = [
    {"_id": "g1", "sport": "SOCCER", "home_team": "Manchester City FC", "away_team": "Everton FC", "league": "Premier League"},
    {"_id": "g2", "sport": "BASKETBALL", "home_team": "Boston Celtics", "away_team": "New York Knicks", "league": "NBA"},
    {"_id": "g3", "sport": "SOCCER", "home_team": "Arsenal", "away_team": "Chelsea", "league": "Premier League"},
]


def _live(home, away, league="", sport=Sport.soccer):
    return CanonicalLiveMatch(
        source="betsapi",
        external_id="x",
        sport=sport,
        home_team=home,
        away_team=away,
        league=league,
        status=GameStatus.live,
    )


def test_prefix_containment_within_league():
    matcher = GameMatcher(GAMES)

    assert matcher.match(_live("Manchester City", "Everton", "Premier League"))["_id"] == "g1"


def test_relaxes_league_when_names_differ():
    matcher = GameMatcher(GAMES)

    assert matcher.match(_live("Arsenal", "Chelsea", "England Premier League"))["_id"] == "g3"


def test_scoped_by_sport_and_both_teams():
    matcher = GameMatcher(GAMES)

    assert matcher.match(_live("Boston Celtics", "New York Knicks", "NBA", sport=Sport.hockey)) is None
    assert matcher.match(_live("Arsenal", "Tottenham")) is None


def test_long_names_only_compare_the_prefix():
    games = [{"_id": "g9", "sport": "SOCCER", "home_team": "Borussia Monchengladbach", "away_team": "Werder Bremen"}]

    live = _live("Borussia Mönchengladbach II", "Werder Bremen")
    assert GameMatcher(games).match(live)["_id"] == "g9"


def test_ambiguous_match_takes_first_and_warns(caplog):
    games = [
        {"_id": "a", "sport": "SOCCER", "home_team": "Real Madrid", "away_team": "Barcelona", "league": ""},
        {"_id": "b", "sport": "SOCCER", "home_team": "Real Madrid Castilla", "away_team": "Barcelona B", "league": ""},
    ]

    with caplog.at_level(logging.WARNING, logger="gambo.game_matcher"):
        found = GameMatcher(games).match(_live("Real Madrid", "Barcelona"))

    assert found["_id"] == "a"
    assert "Ambiguous match" in caplog.text
