"""
backend/tests/test_settlement_classifier.py

Purpose:
    Pick text / structured market + final score → WIN, LOSS, PUSH or pending.
"""

from __future__ import annotations

import pytest

from gambo.models.game import PickResult, Sport
from gambo.models.market import BTTS, H2H, DoubleChance, Spread, Totals, market_to_document
from gambo.services.settlement_classifier import classify_pick, parse_pick, settle_market


def _game(home="Man City", away="Everton", home_score=3, away_score=1, status="FINISHED", sport="SOCCER"):
    return {
        "_id": "g1",
        "sport": sport,
        "home_team": home,
        "away_team": away,
        "status": status,
        "home_score": home_score,
        "away_score": away_score,
    }


def _pick(text, bet_type=None, market=None, odds=1.5):
    pick = {"_id": "p1", "pick": text, "odds": odds}
    if bet_type:
        pick["bet_type"] = bet_type
    if market:
        pick["market"] = market
    return pick


def test_team_name_win_pick_matches_abbreviated_stored_name():
    assert parse_pick("Manchester City to Win", "Man City", "Everton") == H2H(outcome="home")
    assert classify_pick(_pick("Manchester City to Win"), _game()) == PickResult.win


def test_away_team_win_pick_loses_when_home_wins():
    assert classify_pick(_pick("Everton to Win"), _game()) == PickResult.loss


@pytest.mark.parametrize("text,expected", [("Home Win", "home"), ("away to win", "away"), ("Everton ML", "away")])
def test_literal_win_phrases(text, expected):
    assert parse_pick(text, "Man City", "Everton") == H2H(outcome=expected)


def test_soccer_tie_on_strict_win_pick_is_loss():
    game = _game(home="Arsenal", away="Chelsea", home_score=1, away_score=1)

    assert classify_pick(_pick("Arsenal"), game) == PickResult.loss


def test_draw_no_bet_tie_is_push():
    game = _game(home="Arsenal", away="Chelsea", home_score=1, away_score=1)

    assert parse_pick("Arsenal (Draw No Bet)", "Arsenal", "Chelsea") == H2H(outcome="home", draw_no_bet=True)
    assert classify_pick(_pick("Arsenal (Draw No Bet)"), game) == PickResult.push


def test_tie_in_drawless_sport_is_push():
    game = _game(home="Los Angeles Lakers", away="Boston Celtics", home_score=100, away_score=100, sport="BASKETBALL")

    assert classify_pick(_pick("Lakers ML"), game) == PickResult.push


def test_draw_pick():
    assert classify_pick(_pick("Draw"), _game(home_score=1, away_score=1)) == PickResult.win
    assert classify_pick(_pick("Draw"), _game()) == PickResult.loss


def test_double_chance_is_not_read_as_win_or_draw():
    assert parse_pick("Home or Draw", "Man City", "Everton") == DoubleChance(covers="1X")
    assert parse_pick("Everton or Draw", "Man City", "Everton") == DoubleChance(covers="X2")
    assert parse_pick("Double Chance: 12", "Man City", "Everton") == DoubleChance(covers="12")

    assert classify_pick(_pick("Home or Draw"), _game(home_score=1, away_score=1)) == PickResult.win
    assert classify_pick(_pick("Home or Draw"), _game(home_score=0, away_score=1)) == PickResult.loss
    assert classify_pick(_pick("X2"), _game(home_score=0, away_score=0)) == PickResult.win
    assert classify_pick(_pick("12"), _game(home_score=2, away_score=2)) == PickResult.loss


def test_over_under_uses_first_number_and_pushes_on_the_line():
    assert parse_pick("Over 2.5 Goals") == Totals(line=2.5, side="over")
    assert parse_pick("Under 2,5") == Totals(line=2.5, side="under")

    game = _game(home_score=2, away_score=1)
    assert classify_pick(_pick("Over 2.5"), game) == PickResult.win
    assert classify_pick(_pick("Under 2.5"), game) == PickResult.loss
    assert classify_pick(_pick("Over 3"), game) == PickResult.push
    assert classify_pick(_pick("Under 3 Goals"), game) == PickResult.push


def test_over_without_line_stays_pending():
    assert parse_pick("Over") is None
    assert classify_pick(_pick("Over"), _game()) is None


def test_both_teams_to_score():
    assert parse_pick("BTTS - Yes") == BTTS(yes=True)
    assert parse_pick("Both Teams To Score: No") == BTTS(yes=False)

    assert classify_pick(_pick("BTTS - Yes"), _game(home_score=1, away_score=1)) == PickResult.win
    assert classify_pick(_pick("BTTS - No"), _game(home_score=1, away_score=1)) == PickResult.loss
    assert classify_pick(_pick("Both Teams To Score: No"), _game(home_score=2, away_score=0)) == PickResult.win


def test_spread_applies_to_the_named_side():
    home, away = "Boston Celtics", "New York Knicks"
    assert parse_pick("Celtics -8.5", home, away) == Spread(value=-8.5, side="home")
    assert parse_pick("Knicks +8.5", home, away) == Spread(value=8.5, side="away")

    game = _game(home=home, away=away, home_score=110, away_score=100, sport="BASKETBALL")
    assert classify_pick(_pick("Celtics -8.5"), game) == PickResult.win
    assert classify_pick(_pick("Knicks +8.5"), game) == PickResult.loss
    assert classify_pick(_pick("Celtics -10"), game) == PickResult.push

    close_game = _game(home=home, away=away, home_score=105, away_score=100, sport="BASKETBALL")
    assert classify_pick(_pick("Celtics -8.5"), close_game) == PickResult.loss


def test_unrecognised_pick_stays_pending():
    assert parse_pick("First goalscorer: Haaland", "Man City", "Everton") is None
    assert classify_pick(_pick("First goalscorer: Haaland"), _game()) is None


def test_bet_type_tag_is_tried_first():
    assert parse_pick("Man City", "Man City", "Everton", bet_type="h2h") == H2H(outcome="home")
    assert parse_pick("Home or Draw", "Man City", "Everton", bet_type="doubleChance") == DoubleChance(covers="1X")
    # an unknown tag is ignored
    assert parse_pick("Over 2.5", bet_type="corners") == Totals(line=2.5, side="over")


def test_structured_market_takes_priority_over_text():
    pick = _pick("something unreadable", market={"kind": "totals", "line": "2.5", "side": "over"})

    assert classify_pick(pick, _game(home_score=3, away_score=1)) == PickResult.win


def test_stored_market_document_settles_without_text():
    pick = _pick("", market=market_to_document(Spread(value=2.5, side="away")))

    assert pick["market"] == {"kind": "spread", "value": 2.5, "side": "away"}
    assert classify_pick(pick, _game(home_score=3, away_score=1)) == PickResult.win


def test_cancelled_game_pushes_every_pick():
    game = _game(status="CANCELLED", home_score=None, away_score=None)

    assert classify_pick(_pick("Manchester City to Win"), game) == PickResult.push
    assert classify_pick(_pick("anything"), game) == PickResult.push


def test_open_or_scoreless_games_are_not_settled():
    assert classify_pick(_pick("Draw"), _game(status="LIVE", home_score=1, away_score=1)) is None
    assert classify_pick(_pick("Draw"), _game(home_score=None, away_score=None)) is None


def test_settle_market_double_chance_and_away_h2h():
    assert settle_market(H2H(outcome="away"), 0, 2, Sport.soccer) == PickResult.win
    assert settle_market(DoubleChance(covers="X2"), 2, 1) == PickResult.loss
    assert settle_market(Spread(value=1.5, side="away"), 2, 1) == PickResult.win
