"""Closed set of settleable markets.

New picks carry a structured ``market`` sub-document that maps onto one of
these variants directly; legacy picks only have free text and go through the
text classifier in ``gambo.services.settlement_classifier``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional, Union

Side = Literal["home", "away"]


@dataclass(frozen=True)
class H2H:
    outcome: Literal["home", "away", "draw"]
    draw_no_bet: bool = False


@dataclass(frozen=True)
class DoubleChance:
    covers: Literal["1X", "X2", "12"]


@dataclass(frozen=True)
class Totals:
    line: float
    side: Literal["over", "under"]


@dataclass(frozen=True)
class BTTS:
    yes: bool


@dataclass(frozen=True)
class Spread:
    value: float
    side: Side = "home"


Market = Union[H2H, DoubleChance, Totals, BTTS, Spread]

_KIND_BY_TYPE = {H2H: "h2h", DoubleChance: "doubleChance", Totals: "totals", BTTS: "btts", Spread: "spread"}
_TYPE_BY_KIND = {kind: cls for cls, kind in _KIND_BY_TYPE.items()}


def market_kind(market: Market) -> str:
    return _KIND_BY_TYPE[type(market)]


def market_to_document(market: Market) -> dict[str, Any]:
    return {"kind": market_kind(market), **asdict(market)}


def market_from_document(doc: Optional[dict[str, Any]]) -> Optional[Market]:
    """Build a market from a stored ``market`` sub-document, None if incomplete."""
    if not isinstance(doc, dict):
        return None
    cls = _TYPE_BY_KIND.get(str(doc.get("kind") or ""))
    if cls is None:
        return None
    fields = {k: v for k, v in doc.items() if k != "kind"}
    try:
        if "line" in fields:
            fields["line"] = float(fields["line"])
        if "value" in fields:
            fields["value"] = float(fields["value"])
        return cls(**fields)
    except (TypeError, ValueError):
        return None
