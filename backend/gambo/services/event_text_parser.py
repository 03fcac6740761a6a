"""
backend/gambo/services/event_text_parser.py

Purpose:
    Turn free-text match timeline lines into structured goals, cards and
    substitutions, e.g. ``"44' - 1st Goal - (Hapoel Rishon Lezion) -"`` or
    ``"45+2' ~ 1st Yellow Card ~  ~(Hapoel Hadera)"``.

Notes:
    - The text form rarely names players; the team name stands in as the
      player rather than inventing one.
    - Lines that match no keyword, or carry no leading minute, are dropped.
"""

from __future__ import annotations

import re
from typing import Iterable

from gambo.models.live_match import Card, Goal, MatchEvents, Substitution

_EXTRA_TIME_RE = re.compile(r"^(\d+)\+(\d+)'")
_MINUTE_RE = re.compile(r"^(\d+)'")
_TEAM_RE = re.compile(r"\((.*?)\)")

UNKNOWN_TEAM = "Unknown"


def _clock(text: str) -> tuple[int, int | None] | None:
    extra = _EXTRA_TIME_RE.match(text)
    if extra:
        return int(extra.group(1)), int(extra.group(2))
    minute = _MINUTE_RE.match(text)
    if minute:
        return int(minute.group(1)), None
    return None


def _team(text: str) -> str:
    found = _TEAM_RE.search(text)
    team = found.group(1).strip() if found else ""
    return team or UNKNOWN_TEAM


def parse_event_lines(lines: Iterable[str]) -> MatchEvents:
    events = MatchEvents()
    for raw in lines:
        text = str(raw or "").strip()
        if not text:
            continue

        if "Goal" in text:
            kind = "goal"
        elif "Yellow Card" in text:
            kind = "yellow"
        elif "Red Card" in text:
            kind = "red"
        elif "Substitution" in text:
            kind = "substitution"
        else:
            continue

        clock = _clock(text)
        if clock is None:
            continue
        minute, extra_time = clock
        team = _team(text)

        if kind == "goal":
            events.goals.append(Goal(team=team, player=team, minute=minute, extra_time=extra_time))
        elif kind == "substitution":
            events.substitutions.append(Substitution(team=team, minute=minute, extra_time=extra_time))
        else:
            events.cards.append(
                Card(team=team, player=team, minute=minute, extra_time=extra_time, kind=kind)
            )
    return events


def event_texts(raw_events: Iterable[dict | str]) -> list[str]:
    """Pull the ``text`` field out of provider timeline entries."""
    texts: list[str] = []
    for entry in raw_events or []:
        if isinstance(entry, str):
            texts.append(entry)
        elif isinstance(entry, dict) and entry.get("text"):
            texts.append(str(entry["text"]))
    return texts
