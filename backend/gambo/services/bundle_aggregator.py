"""Fold per-pick results into a bundle's performance.

A parlay dies on its first LOSS (actual return -1, the stake-lost sentinel)
no matter how many picks are still pending. It wins only when every pick
has WON, returning the product of the pick odds. Anything else, including a
bundle holding a PUSH, stays unresolved while the counters still track
partial progress.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Iterable, Optional

from gambo.errors import MalformedPayload
from gambo.models.game import BundlePerformance, BundleResult, PickResult

logger = logging.getLogger("gambo.bundle_aggregator")

STAKE_LOST = -1.0


def _result_of(pick: dict[str, Any]) -> Optional[PickResult]:
    try:
        return PickResult(pick["result"]) if pick.get("result") else None
    except ValueError:
        return None


def _odds_of(pick: dict[str, Any]) -> float:
    try:
        odds = float(pick["odds"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedPayload(f"pick {pick.get('_id')} has no usable odds: {pick.get('odds')!r}") from exc
    if not math.isfinite(odds) or odds <= 0:
        raise MalformedPayload(f"pick {pick.get('_id')} has no usable odds: {odds!r}")
    return odds


def combined_odds(picks: Iterable[dict[str, Any]]) -> float:
    """Exact product of the pick odds; callers round for display."""
    return math.prod(_odds_of(pick) for pick in picks)


def aggregate_bundle(picks: list[dict[str, Any]], now: datetime | None = None) -> BundlePerformance:
    results = [_result_of(pick) for pick in picks]
    performance = BundlePerformance(
        total_games=len(picks),
        wins=results.count(PickResult.win),
        losses=results.count(PickResult.loss),
        pushes=results.count(PickResult.push),
        pending=results.count(None),
        updated_at=now,
    )
    if performance.losses:
        performance.result = BundleResult.loss
        performance.actual_return = STAKE_LOST
    elif picks and performance.wins == len(picks):
        try:
            performance.actual_return = combined_odds(picks)
        except MalformedPayload as exc:
            logger.warning("All picks won but the return is unknown, left unresolved: %s", exc)
            return performance
        performance.result = BundleResult.win
    return performance
