"""
backend/gambo/services/settlement_classifier.py

Purpose:
    Decide WIN / LOSS / PUSH for a pick on a terminal game. New picks carry a
    structured ``market`` sub-document; legacy picks only have free text,
    which ``parse_pick`` maps onto the same closed set of markets.

Rules (first match wins, a ``betType`` tag is tried first as a hint):
    - double chance ("Home or Draw", "1X", "X2", "12") is recognised before
      anything else so its "draw" / team wording is not misread
    - win: "home win", "away to win", "<team> ML", "<team> (DNB)" ...
    - draw
    - over / under: the first numeric token is the line
    - both teams to score: "no" means no, otherwise yes
    - spread: first signed number, applied to the side the pick names

    An unrecognised pick yields None and stays PENDING.

Dependencies:
    - gambo.models.market
    - gambo.utils.team_matching
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional

from gambo.models.game import (
    BetType,
    GameStatus,
    PickResult,
    Sport,
    coerce_sport,
    coerce_status,
)
from gambo.models.market import BTTS, H2H, DoubleChance, Market, Spread, Totals, market_from_document
from gambo.utils.team_matching import fold, teams_match

# Sports where a level score is not a settleable outcome of a win market
DRAWLESS_SPORTS = {Sport.basketball, Sport.football, Sport.hockey, Sport.tennis}

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")
_SIGNED_RE = re.compile(r"(?<![\w.])[+-]\d+(?:[.,]\d+)?")
_WORD_RE = re.compile(r"[a-z0-9]+")
_DC_CODE_RE = re.compile(r"\b(1x|x2|12)\b")
_OR_RE = re.compile(r"\s+or\s+|\s*/\s*")
_DNB_RE = re.compile(r"\b(draw no bet|dnb)\b")
_WIN_NOISE_RE = re.compile(r"\b(to win|wins|win|ml|moneyline|draw no bet|dnb|team)\b|[():\-]")

_MARKET_WORDS = {
    "over", "under", "total", "totals", "btts", "both", "score",
    "handicap", "spread", "draw", "or", "corners", "cards", "goals", "points",
}


def _number(token: str) -> float:
    return float(token.replace(",", "."))


def _words(text: str) -> set[str]:
    return set(_WORD_RE.findall(text))


def _side_of(part: str, home_team: str, away_team: str) -> Optional[str]:
    """'home' / 'away' / 'draw' for one fragment of a pick, None if unclear."""
    part = part.strip()
    if part in ("draw", "x", "tie"):
        return "draw"
    if part in ("home", "1", "home team"):
        return "home"
    if part in ("away", "2", "away team"):
        return "away"
    if not part:
        return None
    folded_home, folded_away = fold(home_team), fold(away_team)
    if part == folded_home:
        return "home"
    if part == folded_away:
        return "away"
    is_home = teams_match(part, home_team)
    is_away = teams_match(part, away_team)
    if is_home and not is_away:
        return "home"
    if is_away and not is_home:
        return "away"
    return None


# ── rules: text → market ────────────────────────────────────────────────────

def _double_chance(text: str, home_team: str, away_team: str) -> Optional[Market]:
    explicit = "double chance" in text
    body = text.replace("double chance", " ").replace(":", " ").strip()

    code = _DC_CODE_RE.search(body)
    if code and (code.group(1) != "12" or explicit or body == "12"):
        return DoubleChance(covers=code.group(1).upper())

    parts = [p for p in _OR_RE.split(body) if p.strip()]
    if len(parts) == 2:
        sides = {_side_of(p, home_team, away_team) for p in parts}
        if sides == {"home", "draw"}:
            return DoubleChance(covers="1X")
        if sides == {"away", "draw"}:
            return DoubleChance(covers="X2")
        if sides == {"home", "away"}:
            return DoubleChance(covers="12")
    return None


def _is_double_chance_phrase(text: str) -> bool:
    return "double chance" in text or " or " in f" {text} " or bool(_DC_CODE_RE.search(text))


def _win(text: str, home_team: str, away_team: str) -> Optional[Market]:
    draw_no_bet = bool(_DNB_RE.search(text))
    remaining = " ".join(_WIN_NOISE_RE.sub(" ", text).split())
    if not remaining:
        return None
    if remaining not in ("1", "2"):
        # digits are only allowed when they belong to a team name ("76ers")
        team_words = _words(fold(home_team)) | _words(fold(away_team))
        if any(ch.isdigit() for ch in remaining) and not {
            word for word in _words(remaining) if any(ch.isdigit() for ch in word)
        } <= team_words:
            return None
    if _words(remaining) & _MARKET_WORDS:
        return None
    side = _side_of(remaining, home_team, away_team)
    if side in ("home", "away"):
        return H2H(outcome=side, draw_no_bet=draw_no_bet)
    return None


def _draw(text: str, home_team: str, away_team: str) -> Optional[Market]:
    if _DNB_RE.search(text):
        return None
    if "draw" in _words(text) or text.strip() in ("x", "tie"):
        return H2H(outcome="draw")
    return None


def _totals(text: str, home_team: str, away_team: str) -> Optional[Market]:
    words = _words(text)
    if "over" in words:
        side = "over"
    elif "under" in words:
        side = "under"
    else:
        return None
    number = _NUMBER_RE.search(text)
    if number is None:
        return None
    return Totals(line=_number(number.group(0)), side=side)


def _btts(text: str, home_team: str, away_team: str) -> Optional[Market]:
    words = _words(text)
    if "btts" not in words and "both teams to score" not in text and "both to score" not in text:
        return None
    return BTTS(yes="no" not in words)


def _spread(text: str, home_team: str, away_team: str) -> Optional[Market]:
    signed = _SIGNED_RE.search(text)
    if signed is None:
        return None
    named = " ".join(_SIGNED_RE.sub(" ", text).replace("handicap", " ").replace("spread", " ").split())
    side = "home"
    if named:
        words = _words(named)
        if "away" in words:
            side = "away"
        elif "home" not in words and _side_of(named, home_team, away_team) == "away":
            side = "away"
    return Spread(value=_number(signed.group(0)), side=side)


Rule = Callable[[str, str, str], Optional[Market]]

_RULE_ORDER: list[Rule] = [_win, _draw, _totals, _btts, _spread]

_HINTS: dict[BetType, list[Rule]] = {
    BetType.h2h: [_win, _draw],
    BetType.double_chance: [_double_chance],
    BetType.totals: [_totals],
    BetType.btts: [_btts],
    BetType.spread: [_spread],
}


def parse_pick(
    pick_text: str | None,
    home_team: str = "",
    away_team: str = "",
    bet_type: str | None = None,
) -> Optional[Market]:
    """Map a free-text pick onto a market, None when no rule recognises it."""
    text = fold(pick_text)
    if not text:
        return None

    try:
        hint = BetType(bet_type) if bet_type else None
    except ValueError:
        hint = None
    if hint is not None:
        for rule in _HINTS[hint]:
            market = rule(text, home_team, away_team)
            if market is not None:
                return market

    if _is_double_chance_phrase(text):
        market = _double_chance(text, home_team, away_team)
        if market is not None or "double chance" in text:
            return market

    for rule in _RULE_ORDER:
        market = rule(text, home_team, away_team)
        if market is not None:
            return market
    return None


# ── market + final score → verdict ──────────────────────────────────────────

def _compare(value: float, threshold: float) -> PickResult:
    if value > threshold:
        return PickResult.win
    if value == threshold:
        return PickResult.push
    return PickResult.loss


def settle_market(market: Market, home: int, away: int, sport: Sport | None = None) -> PickResult:
    if isinstance(market, H2H):
        if market.outcome == "draw":
            return PickResult.win if home == away else PickResult.loss
        if home == away:
            if market.draw_no_bet or sport in DRAWLESS_SPORTS:
                return PickResult.push
            return PickResult.loss
        home_won = home > away
        return PickResult.win if home_won == (market.outcome == "home") else PickResult.loss

    if isinstance(market, DoubleChance):
        covered = {
            "1X": home >= away,
            "X2": away >= home,
            "12": home != away,
        }[market.covers]
        return PickResult.win if covered else PickResult.loss

    if isinstance(market, Totals):
        total = home + away
        if market.side == "over":
            return _compare(total, market.line)
        return _compare(-total, -market.line)

    if isinstance(market, BTTS):
        both_scored = home > 0 and away > 0
        return PickResult.win if both_scored == market.yes else PickResult.loss

    if isinstance(market, Spread):
        if market.side == "away":
            return _compare(away + market.value, home)
        return _compare(home + market.value, away)

    raise TypeError(f"unsupported market {market!r}")


def pick_market(pick: dict[str, Any], game: dict[str, Any]) -> Optional[Market]:
    """Structured market first, free-text classifier as the fallback."""
    market = market_from_document(pick.get("market"))
    if market is not None:
        return market
    return parse_pick(
        pick.get("pick"),
        game.get("home_team") or "",
        game.get("away_team") or "",
        pick.get("bet_type"),
    )


def classify_pick(pick: dict[str, Any], game: dict[str, Any]) -> Optional[PickResult]:
    """Verdict for one pick, None while the game is open or the pick is unrecognised."""
    status = coerce_status(game.get("status"))
    if status == GameStatus.cancelled:
        return PickResult.push
    if status != GameStatus.finished:
        return None
    home, away = game.get("home_score"), game.get("away_score")
    if home is None or away is None:
        return None
    market = pick_market(pick, game)
    if market is None:
        return None
    return settle_market(market, int(home), int(away), coerce_sport(game.get("sport")))
