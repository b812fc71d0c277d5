"""Health and readiness endpoints for container orchestration.

- ``GET /health`` -- Liveness probe.  Returns 200 while the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the chat
  database answers ``SELECT 1`` **and** the messaging provider client and
  role configuration were built at startup.  Returns 503 with per-check
  details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quote_chat.state.schema import connect_chat_db


def _ping_database(db_path: str) -> None:
    conn = connect_chat_db(db_path)
    try:
        conn.execute("SELECT 1")
    finally:
        conn.close()


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks the chat database and provider wiring."""
        state = request.app.state
        checks: dict[str, str] = {}

        try:
            await asyncio.to_thread(_ping_database, str(state.settings.chat_db_path))
            checks["chat_db"] = "ok"
        except sqlite3.Error:
            checks["chat_db"] = "fail"

        configured = state.provider is not None and state.role_config is not None
        checks["provider"] = "ok" if configured else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
