"""
backend/gambo/providers/base.py

Purpose:
    Adapter contract for live-score providers. Each adapter owns its raw →
    canonical mapping (score strings, status codes, period clocks, stats) so
    provider-specific magic numbers never reach the shared state machine.

Dependencies:
    - httpx
    - gambo.providers.http_client.ResilientClient
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from gambo.errors import MalformedPayload, ProviderUnavailable
from gambo.models.game import Sport
from gambo.models.live_match import CanonicalLiveMatch, StatPair
from gambo.providers.http_client import ResilientClient, safe_url
from gambo.utils.clock import Clock, SystemClock


def parse_score_string(value: Any) -> tuple[Optional[int], Optional[int]]:
    """``"H-A"`` → (H, A); (None, None) when the string is missing or malformed."""
    text = str(value or "").strip()
    parts = text.split("-")
    if len(parts) != 2:
        return None, None
    home, away = parts[0].strip(), parts[1].strip()
    if not (home.isdigit() and away.isdigit()):
        return None, None
    return int(home), int(away)


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        cleaned = value.strip().replace("%", "")
        if cleaned.isdigit():
            return int(cleaned)
    return None


def stat_pair(values: Any) -> Optional[StatPair]:
    """``["55", "45"]`` style [home, away] arrays → StatPair, None if unusable."""
    if not isinstance(values, (list, tuple)) or len(values) < 2:
        return None
    home, away = to_int(values[0]), to_int(values[1])
    if home is None or away is None:
        return None
    return StatPair(home=home, away=away)


class LiveScoreProvider(ABC):
    """One external live-score source.

    ``fetch`` never raises: transport failures, non-2xx responses and
    malformed JSON collapse to an empty list, and a single bad entity is
    skipped without dropping the rest of the batch.
    """

    name: str = "provider"
    sports: frozenset[Sport] = frozenset()

    def __init__(self, *, client: ResilientClient | None = None, clock: Clock | None = None) -> None:
        self._client = client or ResilientClient(self.name)
        self._clock = clock or SystemClock()
        self.logger = logging.getLogger(f"gambo.{self.name}")

    def serves(self, sport: Sport) -> bool:
        return sport in self.sports

    async def fetch(self, sport: Sport) -> list[CanonicalLiveMatch]:
        if not self.serves(sport):
            return []
        try:
            raw_items = await self.fetch_raw(sport)
        except ProviderUnavailable as exc:
            self.logger.warning("%s unavailable for %s: %s", self.name, sport.value, exc.detail)
            return []
        except (MalformedPayload, httpx.HTTPError, ValueError) as exc:
            self.logger.warning("%s fetch failed for %s: %s", self.name, sport.value, exc)
            return []

        matches: list[CanonicalLiveMatch] = []
        skipped = 0
        for raw in raw_items:
            try:
                match = self.normalize(raw, sport)
            except (MalformedPayload, KeyError, TypeError, ValueError) as exc:
                skipped += 1
                self.logger.debug("%s skipped malformed event: %s", self.name, exc)
                continue
            if match is not None:
                matches.append(match)
        self.logger.info(
            "%s: %d canonical matches for %s (%d skipped)",
            self.name, len(matches), sport.value, skipped,
        )
        return matches

    async def _get_json(self, url: str, **kwargs) -> dict[str, Any]:
        """GET and decode JSON, raising ProviderUnavailable on transport or status failure."""
        try:
            resp = await self._client.get(url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"{safe_url(url)}: {exc}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            raise ProviderUnavailable(self.name, f"{safe_url(url)}: HTTP {resp.status_code}")
        payload = resp.json()
        if not isinstance(payload, dict):
            raise MalformedPayload(f"{self.name}: expected JSON object from {safe_url(url)}")
        return payload

    async def _gather_bounded(self, coros: list, limit: int) -> list:
        semaphore = asyncio.Semaphore(max(1, limit))

        async def _run(coro):
            async with semaphore:
                return await coro

        return await asyncio.gather(*(_run(c) for c in coros))

    @abstractmethod
    async def fetch_raw(self, sport: Sport) -> list[dict[str, Any]]:
        """Provider-specific fetch of live/finished raw events for one sport."""
        ...

    @abstractmethod
    def normalize(self, raw: dict[str, Any], sport: Sport) -> CanonicalLiveMatch | None:
        """Translate one raw provider event; None for events outside scope."""
        ...

    async def aclose(self) -> None:
        await self._client.aclose()
