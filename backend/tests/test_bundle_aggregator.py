"""
backend/tests/test_bundle_aggregator.py

Purpose:
    Parlay law (any LOSS → -1 immediately) and win law (all WIN → product of odds).
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gambo.errors import MalformedPayload
from gambo.models.game import BundleResult
from gambo.services.bundle_aggregator import STAKE_LOST, aggregate_bundle, combined_odds


def _picks(*results_and_odds):
    return [{"_id": i, "result": result, "odds": odds} for i, (result, odds) in enumerate(results_and_odds)]


def test_all_wins_return_product_of_odds():
    performance = aggregate_bundle(_picks(("WIN", 1.5), ("WIN", 1.33)))

    assert performance.result == BundleResult.win
    assert performance.actual_return == pytest.approx(1.995)
    assert performance.wins == 2
    assert performance.pending == 0


def test_single_loss_kills_bundle_while_others_pending():
    performance = aggregate_bundle(_picks(("LOSS", 1.8), (None, 2.1)))

    assert performance.result == BundleResult.loss
    assert performance.actual_return == STAKE_LOST
    assert performance.losses == 1
    assert performance.pending == 1


def test_partial_progress_stays_unresolved():
    performance = aggregate_bundle(_picks(("WIN", 1.5), (None, 1.9)))

    assert performance.result is None
    assert performance.actual_return is None
    assert (performance.total_games, performance.wins, performance.pending) == (2, 1, 1)


def test_push_keeps_bundle_unresolved():
    performance = aggregate_bundle(_picks(("WIN", 1.5), ("PUSH", 1.9)))

    assert performance.result is None
    assert performance.actual_return is None
    assert performance.pushes == 1


def test_empty_bundle_is_unresolved():
    performance = aggregate_bundle([])

    assert performance.total_games == 0
    assert performance.result is None


def test_same_outcome_ignores_timestamp():
    now = datetime(2024, 3, 2, 18, 0, tzinfo=timezone.utc)
    performance = aggregate_bundle(_picks(("LOSS", 1.8), (None, 2.1)), now)

    stored = performance.model_dump(mode="json")
    stored["updated_at"] = "2020-01-01T00:00:00Z"
    assert performance.same_outcome(stored)
    assert not performance.same_outcome({**stored, "pending": 0, "wins": 1})
    assert not performance.same_outcome(None)


def test_combined_odds_keeps_full_precision():
    odds = [{"odds": 1.37}, {"odds": 2.11}, {"odds": 1.93}, {"odds": 1.07}]

    assert combined_odds(odds) == 1.37 * 2.11 * 1.93 * 1.07
    assert combined_odds(odds) != round(combined_odds(odds), 4)


@pytest.mark.parametrize("odds", [None, "", "n/a", 0, -1.5])
def test_combined_odds_rejects_unusable_odds(odds):
    with pytest.raises(MalformedPayload):
        combined_odds([{"_id": "p1", "odds": 1.5}, {"_id": "p2", "odds": odds}])


def test_all_wins_with_missing_odds_stay_unresolved():
    performance = aggregate_bundle([{"_id": 1, "result": "WIN", "odds": 1.5}, {"_id": 2, "result": "WIN"}])

    assert performance.wins == 2
    assert performance.result is None
    assert performance.actual_return is None
