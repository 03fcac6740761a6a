"""
backend/gambo/middleware/logging.py

Purpose:
    Process logging setup and one JSON access-log line per request to the
    settlement service, tagged with the trigger surface (pass run, admin
    correction, health) and, for admin actions, the game being corrected.

Notes:
    - Health probes are logged at DEBUG; failed requests at WARNING.
    - An upstream X-Request-ID is kept so scheduler/cron callers can
      correlate a pass with their own logs.
"""

import json
import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gambo.config import settings

logger = logging.getLogger("gambo.http")

_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
_ADMIN_GAME_PATH = re.compile(r"^/api/admin/settlement/games/(?P<game_id>[^/]+)/(?P<action>cancel|revert|correct)$")

# Libraries that log per request or per job run at INFO
_QUIET_LOGGERS = ("httpx", "apscheduler.executors.default", "apscheduler.scheduler")


def _surface(path: str) -> str:
    if path.startswith("/api/admin/settlement"):
        return "admin"
    if path.startswith("/api/settlement"):
        return "settlement"
    if path == "/health":
        return "health"
    return "other"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if _REQUEST_ID.match(incoming) else uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.monotonic()

        response: Response = await call_next(request)

        path = request.url.path
        entry = {
            "request_id": request_id,
            "surface": _surface(path),
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round((time.monotonic() - started) * 1000, 2),
        }
        admin = _ADMIN_GAME_PATH.match(path)
        if admin:
            entry["action"] = admin.group("action")
            entry["game_id"] = admin.group("game_id")

        if response.status_code >= 400:
            level = logging.WARNING
        elif entry["surface"] == "health":
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(level, json.dumps(entry))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: int | str | None = None) -> None:
    """Configure root logging once; ``level`` defaults to ``settings.LOG_LEVEL``."""
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
