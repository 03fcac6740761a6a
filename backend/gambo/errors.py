"""Exception taxonomy for the settlement engine.

Only ``StoreUnavailable`` is allowed to escape a settlement pass. Provider and
payload errors are absorbed at the adapter boundary; no-match, unrecognized
markets and coverage gaps are outcomes counted in the pass summary.
"""


class SettlementError(Exception):
    """Base class for engine errors."""


class ProviderUnavailable(SettlementError):
    """Network error or non-2xx response from a live-score provider."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class MalformedPayload(SettlementError):
    """A provider entity (score string, timeline, odds) could not be parsed."""


class InvalidTransition(SettlementError):
    """A game status change that the lifecycle does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move game from {current} to {target}")
        self.current = current
        self.target = target


class StoreUnavailable(SettlementError):
    """Persistent store connectivity failure; aborts the whole pass."""


class GameNotFound(SettlementError):
    """Administrative action referenced a game id that does not exist."""
