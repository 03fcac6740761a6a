"""
backend/gambo/config.py

Purpose:
    Central settings loading for the settlement engine and its provider
    adapters.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "gambo"

    # BetsAPI (paid, one token per sport)
    BETSAPI_SOCCER_TOKEN: str = ""
    BETSAPI_BASKETBALL_TOKEN: str = ""
    BETSAPI_TENNIS_TOKEN: str = ""
    BETSAPI_HOCKEY_TOKEN: str = ""
    BETSAPI_FOOTBALL_TOKEN: str = ""
    BETSAPI_BASE_URL: str = "https://api.b365api.com"

    # SportMonks (soccer fallback)
    SPORTMONKS_API_KEY: str = ""
    SPORTMONKS_BASE_URL: str = "https://api.sportmonks.com/v3/football"

    # sportapi7 on RapidAPI (other sports, last-resort soccer)
    RAPIDAPI_KEY: str = ""
    SPORTAPI7_BASE_URL: str = "https://sportapi7.p.rapidapi.com"
    SPORTAPI7_HOST: str = "sportapi7.p.rapidapi.com"

    # Provider HTTP runtime
    PROVIDER_TIMEOUT_SECONDS: float = 15.0
    PROVIDER_MAX_RETRIES: int = 0  # a failed fetch is picked up by the next pass
    PROVIDER_BASE_DELAY_SECONDS: float = 2.0
    PROVIDER_DETAIL_CONCURRENCY: int = 5

    # Canonical live-score cache
    LIVE_SCORES_CACHE_TTL_SECONDS: int = 45
    LIVE_SCORES_CACHE_BACKEND: str = "memory"  # "memory" | "mongo"

    # Settlement pass
    SETTLEMENT_FINISH_AFTER_MINUTES: int = 120
    COVERAGE_GAP_GRACE_MINUTES: int = 60
    TEAM_MATCH_PREFIX_LENGTH: int = 15
    SETTLEMENT_SCHEDULER_ENABLED: bool = False
    SETTLEMENT_INTERVAL_MINUTES: int = 5

    # Root log level for the service and the CLI ("DEBUG", "INFO", ...)
    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


def credential(value: str | None) -> str:
    """Return a usable credential, or "" for blanks and unfilled placeholders."""
    cleaned = str(value or "").strip()
    if not cleaned or (cleaned.startswith("your_") and cleaned.endswith("_here")):
        return ""
    return cleaned


settings = Settings()
