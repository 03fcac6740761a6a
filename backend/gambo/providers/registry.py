"""Per-sport provider priority plan.

Soccer: BetsAPI → Sportmonks → sportapi7. Basketball, hockey and American
football: BetsAPI → sportapi7. Tennis: BetsAPI only. Providers without a
usable credential are left out of the plan entirely.
"""

from __future__ import annotations

from gambo.config import credential, settings
from gambo.models.game import Sport
from gambo.providers.base import LiveScoreProvider
from gambo.providers.betsapi import BetsAPIProvider, betsapi_tokens
from gambo.providers.sportapi7 import SportAPI7Provider
from gambo.providers.sportmonks import SportmonksLiveProvider
from gambo.utils.clock import Clock

PRIORITY: dict[Sport, tuple[str, ...]] = {
    Sport.soccer: ("betsapi", "sportmonks", "sportapi7"),
    Sport.basketball: ("betsapi", "sportapi7"),
    Sport.hockey: ("betsapi", "sportapi7"),
    Sport.football: ("betsapi", "sportapi7"),
    Sport.tennis: ("betsapi",),
}


def build_providers(clock: Clock | None = None) -> list[LiveScoreProvider]:
    """Instantiate every provider that has credentials configured."""
    providers: list[LiveScoreProvider] = []
    tokens = betsapi_tokens()
    if tokens:
        providers.append(BetsAPIProvider(tokens, clock=clock))
    if credential(settings.SPORTMONKS_API_KEY):
        providers.append(SportmonksLiveProvider(settings.SPORTMONKS_API_KEY, clock=clock))
    if credential(settings.RAPIDAPI_KEY):
        providers.append(SportAPI7Provider(settings.RAPIDAPI_KEY, clock=clock))
    return providers


def provider_plan(providers: list[LiveScoreProvider]) -> list[tuple[Sport, LiveScoreProvider]]:
    """Flatten to (sport, provider) pairs in merge order: sport, then priority."""
    by_name = {provider.name: provider for provider in providers}
    plan: list[tuple[Sport, LiveScoreProvider]] = []
    for sport, names in PRIORITY.items():
        for name in names:
            provider = by_name.get(name)
            if provider is not None and provider.serves(sport):
                plan.append((sport, provider))
    return plan
