"""Human-readable period/clock strings shared by the provider adapters.

Soccer reads "First Half - 23'", "First Half - 45+2'", "Halftime",
"Second Half - 67'", "Extra Time - 95'"; quarter sports read "Q3 - 7'" and
hockey "P2 - 12'".
"""

from __future__ import annotations

from typing import Optional

from gambo.models.game import Sport

SOCCER_PHASE_LABELS = {
    "1H": "First Half",
    "HT": "Halftime",
    "2H": "Second Half",
    "ET": "Extra Time",
    "PEN": "Penalties",
}

# Regulation periods and their prefix per sport
PERIOD_LAYOUT: dict[Sport, tuple[str, int]] = {
    Sport.basketball: ("Q", 4),
    Sport.football: ("Q", 4),
    Sport.hockey: ("P", 3),
}


def _minute_label(minute: Optional[int], added: Optional[int] = None) -> Optional[str]:
    if minute is None:
        return None
    if added:
        return f"{minute}+{added}'"
    return f"{minute}'"


def soccer_period(phase: str, minute: Optional[int] = None, added: Optional[int] = None) -> str:
    label = SOCCER_PHASE_LABELS.get(phase, "LIVE")
    if phase in ("HT", "PEN"):
        return label
    clock = _minute_label(minute, added)
    return f"{label} - {clock}" if clock else label


def numbered_period(sport: Sport, index: Optional[int], minute: Optional[int] = None) -> str:
    """``Q2 - 7'`` / ``P3``; "OT" past regulation, "LIVE" when the index is unknown."""
    prefix, regulation = PERIOD_LAYOUT.get(sport, ("P", 0))
    if not index or index < 1:
        return "LIVE"
    label = f"{prefix}{index}" if not regulation or index <= regulation else "OT"
    clock = _minute_label(minute)
    return f"{label} - {clock}" if clock else label
