from __future__ import annotations

from typing import Any

from filmnight.config.settings import Settings


def liveness() -> dict[str, Any]:
    return {"ok": True}


def _database_ready(conn: Any) -> str:
    try:
        if hasattr(conn, "execute"):
            conn.execute("SELECT 1").fetchone()
        else:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
        return "ready"
    except Exception as exc:
        return f"error: {exc}"


def readiness(conn: Any | None, settings: Settings | None = None) -> dict[str, Any]:
    """Database state decides ``ok``; enrichment sources only ever degrade."""
    dependencies: dict[str, str] = {}
    if conn is None:
        dependencies["database"] = "error: unavailable"
    else:
        dependencies["database"] = _database_ready(conn)

    if settings is None or not settings.enrichment_enabled:
        dependencies["tmdb"] = "degraded: enrichment disabled"
        dependencies["openai"] = "degraded: enrichment disabled"
    else:
        dependencies["tmdb"] = "ready" if settings.tmdb_api_key else "degraded: no api key"
        dependencies["openai"] = "ready" if settings.openai_api_key else "degraded: no api key"

    ok = dependencies["database"] == "ready"
    return {"ok": ok, "dependencies": dependencies}
