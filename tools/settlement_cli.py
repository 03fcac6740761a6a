#!/usr/bin/env python3
"""Operator CLI for the settlement engine, runs directly against MongoDB.

Usage (from project root):
    python tools/settlement_cli.py run
    python tools/settlement_cli.py stale
    python tools/settlement_cli.py cancel <game_id> [--force]
    python tools/settlement_cli.py revert <game_id>
    python tools/settlement_cli.py correct <game_id> 2 1
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Ensure backend is on sys.path so `gambo.*` imports work
_backend = Path(__file__).resolve().parent.parent / "backend"
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

import gambo.database as _db
from gambo.errors import GameNotFound, InvalidTransition, StoreUnavailable
from gambo.middleware.logging import setup_logging
from gambo.services.settlement_admin_service import SettlementAdminService
from gambo.workers.settlement_runner import run_settlement_pass


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run(args: argparse.Namespace) -> int:
    await _db.connect_db()
    try:
        if args.command == "run":
            summary = await run_settlement_pass()
            _print(summary.model_dump(mode="json"))
            return 0

        service = SettlementAdminService()
        if args.command == "stale":
            stale = await service.find_stale_games()
            _print([game.model_dump(mode="json") for game in stale])
            if not stale:
                print("No stale games.")
            return 0
        if args.command == "cancel":
            if args.dry_run:
                game = await service.store.get_game(args.game_id)
                _print(game or {"error": "not found"})
                return 0
            result = await service.cancel_stale_game(args.game_id, force=args.force)
        elif args.command == "revert":
            result = await service.revert_cancelled_game(args.game_id)
        else:
            result = await service.correct_game_result(args.game_id, args.home_score, args.away_score)
        _print(result.model_dump(mode="json"))
        return 0
    except (GameNotFound, InvalidTransition, ValueError) as exc:
        print(f"Refused: {exc}", file=sys.stderr)
        return 2
    except StoreUnavailable as exc:
        print(f"Store unavailable: {exc}", file=sys.stderr)
        return 3
    finally:
        await _db.close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run settlement passes and fix unresolved games.")
    parser.add_argument("--verbose", action="store_true", help="DEBUG logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run one settlement pass and print the summary.")
    sub.add_parser("stale", help="List games past the coverage-gap threshold without a score.")

    cancel = sub.add_parser("cancel", help="Cancel a stale game; its picks become PUSH.")
    cancel.add_argument("game_id")
    cancel.add_argument("--force", action="store_true", help="Cancel even if a final score exists.")
    cancel.add_argument("--dry-run", action="store_true", help="Show the game without writing.")

    revert = sub.add_parser("revert", help="Undo a cancellation; PUSH picks back to pending.")
    revert.add_argument("game_id")

    correct = sub.add_parser("correct", help="Enter a final score and re-settle the game's picks.")
    correct.add_argument("game_id")
    correct.add_argument("home_score", type=int)
    correct.add_argument("away_score", type=int)

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.verbose else None)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
