"""
backend/gambo/workers/settlement_runner.py

Purpose:
    One settlement pass: fetch the merged live feed, reconcile it with games
    from active bundles, progress statuses (feed first, clock fallback),
    settle picks on terminal games and re-aggregate bundle performance.

Notes:
    - The pass loads its working set once and runs sequentially after the
      concurrent provider fetch; all writes are idempotent ``$set`` upserts.
    - An already-resolved pick is never flipped here; only the admin
      correction path overwrites results.

Dependencies:
    - gambo.services.*
    - gambo.providers.registry
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Iterable, Optional

from gambo.models.game import TERMINAL_STATUSES, GameStatus, PickResult, coerce_sport, coerce_status
from gambo.models.settlement import PassSummary
from gambo.providers.registry import build_providers
from gambo.services.bundle_aggregator import aggregate_bundle
from gambo.services.game_matcher import GameMatcher
from gambo.services.live_cache import LiveCache, build_live_cache
from gambo.services.live_feed import FeedSnapshot, LiveFeed
from gambo.services.settlement_classifier import classify_pick
from gambo.services.settlement_store import SettlementStore, to_object_id
from gambo.services.status_machine import (
    clock_update,
    feed_update,
    has_final_score,
    is_coverage_gap,
    is_feed_noise,
)
from gambo.utils.clock import Clock, SystemClock

logger = logging.getLogger("gambo.settlement_runner")


def _pick_result(pick: dict[str, Any]) -> Optional[PickResult]:
    try:
        return PickResult(pick["result"]) if pick.get("result") else None
    except ValueError:
        return None


class SettlementEngine:
    """Explicitly constructed pass runner: store, live feed and clock are injected."""

    def __init__(self, store: SettlementStore, feed: LiveFeed | None, clock: Clock | None = None) -> None:
        self.store = store
        self.feed = feed
        self.clock = clock or SystemClock()

    # ── building blocks shared with the admin correction path ──────────────

    async def settle_game_picks(
        self, game: dict[str, Any], picks: Iterable[dict[str, Any]], *, overwrite: bool = False
    ) -> int:
        """Write verdicts for ``picks`` of one terminal game; returns picks changed."""
        changed = 0
        now = self.clock.now()
        for pick in picks:
            verdict = classify_pick(pick, game)
            if verdict is None:
                if coerce_status(game.get("status")) == GameStatus.finished and has_final_score(game):
                    logger.debug("Pick %s unrecognised (%r), left pending", pick.get("_id"), pick.get("pick"))
                continue
            current = _pick_result(pick)
            if current == verdict:
                continue
            if current is not None and not overwrite:
                logger.warning(
                    "Pick %s already %s, recomputed %s for game %s; left unchanged",
                    pick.get("_id"), current.value, verdict.value, game.get("_id"),
                )
                continue
            await self.store.update_pick_result(pick["_id"], verdict, now)
            pick["result"] = verdict.value
            changed += 1
        return changed

    async def refresh_bundles(
        self, bundles: Iterable[dict[str, Any]], picks_by_bundle: dict[Any, list[dict[str, Any]]]
    ) -> int:
        """Re-aggregate bundles; only changed performances are written."""
        updated = 0
        now = self.clock.now()
        for bundle in bundles:
            performance = aggregate_bundle(picks_by_bundle.get(bundle["_id"], []), now)
            if performance.same_outcome(bundle.get("performance")):
                continue
            await self.store.upsert_bundle_performance(
                bundle["_id"],
                wins=performance.wins,
                losses=performance.losses,
                pushes=performance.pushes,
                total=performance.total_games,
                actual_return=performance.actual_return,
                result=performance.result,
                pending=performance.pending,
                now=now,
            )
            bundle["performance"] = performance.model_dump(mode="json")
            updated += 1
        return updated

    # ── the pass ────────────────────────────────────────────────────────────

    async def _snapshot(self, games: list[dict[str, Any]]) -> FeedSnapshot:
        open_games = [
            g for g in games
            if coerce_status(g.get("status")) not in TERMINAL_STATUSES or not has_final_score(g)
        ]
        if self.feed is None or not open_games:
            return FeedSnapshot(matches=[])
        sports = {coerce_sport(g.get("sport")) for g in open_games} - {None}
        return await self.feed.snapshot(sports)

    async def run_pass(self) -> PassSummary:
        started = time.monotonic()
        summary = PassSummary(started_at=self.clock.now())

        bundles = await self.store.find_active_bundles()
        picks = await self.store.find_picks_for_bundles(b["_id"] for b in bundles)
        games = await self.store.find_games_by_active_bundles()
        games_by_id = {game["_id"]: game for game in games}

        snapshot = await self._snapshot(games)
        summary.cached = snapshot.cached
        summary.provider_counts = dict(snapshot.provider_counts)

        # Feed-driven progression; first canonical match per game wins
        matcher = GameMatcher(games)
        covered: set[Any] = set()
        for live in snapshot.matches:
            game = matcher.match(live)
            if game is None:
                summary.unmatched_matches += 1
                continue
            if is_feed_noise(live):
                logger.debug("Ignoring empty live listing %s for game %s", live.external_id, game["_id"])
                continue
            if game["_id"] in covered:
                logger.debug("Game %s already matched this pass, ignoring %s", game["_id"], live.external_id)
                continue
            covered.add(game["_id"])
            fields = feed_update(game, live)
            if fields:
                await self.store.upsert_game(game["_id"], fields, self.clock.now())
                game.update(fields)
                summary.games_updated_by_feed += 1

        # Clock fallback for everything the feed did not cover
        now = self.clock.now()
        for game in games:
            if game["_id"] in covered:
                continue
            fields = clock_update(game, now)
            if fields:
                await self.store.upsert_game(game["_id"], fields, now)
                game.update(fields)
                summary.games_updated_by_clock += 1

        # Stale coverage gaps are flagged for administrative resolution
        for game in games:
            if not is_coverage_gap(game, now):
                continue
            summary.coverage_gaps += 1
            if not game.get("coverage_gap"):
                await self.store.upsert_game(game["_id"], {"coverage_gap": True}, now)
                game["coverage_gap"] = True
                logger.warning(
                    "Coverage gap: %s vs %s (%s) has no score %s after kickoff",
                    game.get("home_team"), game.get("away_team"), game["_id"], game.get("scheduled_at"),
                )

        # Settlement on terminal games
        picks_by_game: dict[Any, list[dict[str, Any]]] = defaultdict(list)
        picks_by_bundle: dict[Any, list[dict[str, Any]]] = defaultdict(list)
        for pick in picks:
            picks_by_bundle[to_object_id(pick.get("bundle_id"))].append(pick)
            game = games_by_id.get(to_object_id(pick.get("game_id")))
            if game is not None:
                picks_by_game[game["_id"]].append(pick)
        for game_id, game_picks in picks_by_game.items():
            game = games_by_id[game_id]
            if coerce_status(game.get("status")) in TERMINAL_STATUSES:
                summary.picks_settled += await self.settle_game_picks(game, game_picks)

        summary.bundles_updated = await self.refresh_bundles(bundles, picks_by_bundle)

        summary.duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            "Settlement pass: feed=%d clock=%d picks=%d bundles=%d unmatched=%d gaps=%d cached=%s (%.0fms)",
            summary.games_updated_by_feed,
            summary.games_updated_by_clock,
            summary.picks_settled,
            summary.bundles_updated,
            summary.unmatched_matches,
            summary.coverage_gaps,
            summary.cached,
            summary.duration_ms,
        )
        return summary


_live_cache: LiveCache | None = None


def _shared_cache(clock: Clock) -> LiveCache:
    global _live_cache
    if _live_cache is None:
        _live_cache = build_live_cache(clock)
    return _live_cache


async def run_settlement_pass(clock: Clock | None = None) -> PassSummary:
    """Entry point for the scheduler, the HTTP trigger and the CLI."""
    clock = clock or SystemClock()
    feed = LiveFeed(build_providers(clock), _shared_cache(clock))
    engine = SettlementEngine(SettlementStore(), feed, clock)
    try:
        return await engine.run_pass()
    finally:
        await feed.aclose()
