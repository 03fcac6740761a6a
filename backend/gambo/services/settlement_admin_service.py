"""
backend/gambo/services/settlement_admin_service.py

Purpose:
    Administrative correction path for games the live feed never resolved:
    list stale coverage gaps, cancel them (picks PUSH, stake returned), undo
    a cancellation, or enter a corrected final score. These are the only
    operations allowed to overwrite a terminal game or a resolved pick.

Dependencies:
    - gambo.services.settlement_store
    - gambo.workers.settlement_runner (settle / re-aggregate building blocks)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from gambo.errors import GameNotFound, InvalidTransition
from gambo.models.game import GameStatus, PickResult, coerce_status
from gambo.models.settlement import AdminActionResult, StaleGame
from gambo.services.settlement_store import SettlementStore, to_object_id
from gambo.services.status_machine import has_final_score, is_coverage_gap
from gambo.utils import elapsed_minutes, ensure_utc
from gambo.utils.clock import Clock, SystemClock
from gambo.workers.settlement_runner import SettlementEngine

logger = logging.getLogger("gambo.settlement_admin")


class SettlementAdminService:
    def __init__(self, store: SettlementStore | None = None, clock: Clock | None = None) -> None:
        self.store = store or SettlementStore()
        self.clock = clock or SystemClock()
        self._engine = SettlementEngine(self.store, None, self.clock)

    async def _require_game(self, game_id: str) -> dict[str, Any]:
        game = await self.store.get_game(game_id)
        if game is None:
            raise GameNotFound(f"Game {game_id} not found")
        return game

    async def _reaggregate(self, game_picks: list[dict[str, Any]]) -> int:
        bundle_ids = {to_object_id(pick.get("bundle_id")) for pick in game_picks if pick.get("bundle_id")}
        if not bundle_ids:
            return 0
        bundles = await self.store.find_bundles(bundle_ids)
        picks_by_bundle: dict[Any, list[dict[str, Any]]] = defaultdict(list)
        for pick in await self.store.find_picks_for_bundles(bundle_ids):
            picks_by_bundle[to_object_id(pick.get("bundle_id"))].append(pick)
        return await self._engine.refresh_bundles(bundles, picks_by_bundle)

    async def find_stale_games(self) -> list[StaleGame]:
        """Active-bundle games past the coverage-gap threshold with no score."""
        now = self.clock.now()
        games = await self.store.find_games_by_active_bundles([GameStatus.live, GameStatus.finished])
        stale: list[StaleGame] = []
        for game in games:
            if not is_coverage_gap(game, now):
                continue
            stale.append(
                StaleGame(
                    id=str(game["_id"]),
                    sport=str(game.get("sport") or ""),
                    home_team=str(game.get("home_team") or ""),
                    away_team=str(game.get("away_team") or ""),
                    league=str(game.get("league") or ""),
                    status=str(game.get("status") or ""),
                    scheduled_at=ensure_utc(game["scheduled_at"]),
                    minutes_since_kickoff=elapsed_minutes(game["scheduled_at"], now),
                )
            )
        stale.sort(key=lambda item: item.scheduled_at)
        return stale

    async def cancel_stale_game(self, game_id: str, *, force: bool = False) -> AdminActionResult:
        """CANCELLED + every pick PUSH; refuses games that carry a final score unless forced."""
        game = await self._require_game(game_id)
        status = coerce_status(game.get("status")) or GameStatus.upcoming
        if status == GameStatus.cancelled:
            raise InvalidTransition(status.value, GameStatus.cancelled.value)
        if has_final_score(game) and not force:
            raise InvalidTransition(f"{status.value} with score", GameStatus.cancelled.value)

        now = self.clock.now()
        fields = {
            "status": GameStatus.cancelled.value,
            "current_period": None,
            "coverage_gap": False,
            "cancelled_reason": "no_live_data",
        }
        await self.store.upsert_game(game["_id"], fields, now)
        game.update(fields)

        picks = await self.store.find_picks_for_game(game["_id"], active_only=False)
        picks_updated = await self._engine.settle_game_picks(game, picks, overwrite=True)
        bundles_updated = await self._reaggregate(picks)
        logger.info(
            "Cancelled game %s (%s vs %s): %d picks PUSH, %d bundles updated",
            game["_id"], game.get("home_team"), game.get("away_team"), picks_updated, bundles_updated,
        )
        return AdminActionResult(
            game_id=str(game["_id"]),
            status=GameStatus.cancelled.value,
            picks_updated=picks_updated,
            bundles_updated=bundles_updated,
        )

    async def revert_cancelled_game(self, game_id: str) -> AdminActionResult:
        """Undo a cancellation: back to LIVE, PUSH results cleared to pending."""
        game = await self._require_game(game_id)
        status = coerce_status(game.get("status"))
        if status != GameStatus.cancelled:
            raise InvalidTransition(str(game.get("status")), GameStatus.live.value)

        now = self.clock.now()
        fields = {"status": GameStatus.live.value, "current_period": "LIVE", "cancelled_reason": None}
        await self.store.upsert_game(game["_id"], fields, now)

        picks = await self.store.find_picks_for_game(game["_id"], active_only=False)
        picks_updated = 0
        for pick in picks:
            if pick.get("result") == PickResult.push.value:
                await self.store.update_pick_result(pick["_id"], None, now)
                pick["result"] = None
                picks_updated += 1
        bundles_updated = await self._reaggregate(picks)
        logger.info("Reverted cancelled game %s: %d picks back to pending", game["_id"], picks_updated)
        return AdminActionResult(
            game_id=str(game["_id"]),
            status=GameStatus.live.value,
            picks_updated=picks_updated,
            bundles_updated=bundles_updated,
        )

    async def correct_game_result(self, game_id: str, home_score: int, away_score: int) -> AdminActionResult:
        """Enter a final score by hand and re-settle every pick, overwriting old verdicts."""
        if home_score < 0 or away_score < 0:
            raise ValueError("Scores must be non-negative")
        game = await self._require_game(game_id)

        now = self.clock.now()
        fields = {
            "status": GameStatus.finished.value,
            "home_score": int(home_score),
            "away_score": int(away_score),
            "current_period": "FT",
            "coverage_gap": False,
            "cancelled_reason": None,
        }
        await self.store.upsert_game(game["_id"], fields, now)
        game.update(fields)

        picks = await self.store.find_picks_for_game(game["_id"], active_only=False)
        picks_updated = await self._engine.settle_game_picks(game, picks, overwrite=True)
        bundles_updated = await self._reaggregate(picks)
        logger.info(
            "Corrected game %s to %d-%d: %d picks re-settled, %d bundles updated",
            game["_id"], home_score, away_score, picks_updated, bundles_updated,
        )
        return AdminActionResult(
            game_id=str(game["_id"]),
            status=GameStatus.finished.value,
            picks_updated=picks_updated,
            bundles_updated=bundles_updated,
        )
