from __future__ import annotations

import os
import sqlite3
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from filmnight.config.settings import Settings
from filmnight.db.sqlite_client import create_session, get_connection, init_schema, insert_movie


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    os.environ.pop("DATABASE_URL", None)
    db_path = str(tmp_path / "test.db")
    conn = get_connection(db_path)
    init_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        defaults: dict[str, Any] = {
            "database_url": "",
            "sqlite_db_path": "data/filmnight.db",
            "tmdb_api_key": "tmdb-test",
            "tmdb_base_url": "https://tmdb.example/3",
            "openai_api_key": "sk-test",
            "openai_model": "gpt-4.1-mini",
            "enrichment_enabled": True,
            "enrichment_timeout_seconds": 5.0,
            "log_level": "INFO",
            "base_url": "http://localhost:8501",
        }
        defaults.update(overrides)
        return Settings(**defaults)

    return _make


@pytest.fixture
def abc_session(sqlite_db) -> dict[str, Any]:
    """A session holding movies A, B and C, added in that order."""
    session = create_session(sqlite_db, "Friday Night")
    movies = {title: insert_movie(sqlite_db, session["id"], title) for title in ("A", "B", "C")}
    return {"session_id": session["id"], "movies": movies}
