from __future__ import annotations

import json
import os
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filmnight.errors import Conflict, StorageError

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    name TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS movies (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    title TEXT NOT NULL CHECK(length(trim(title)) > 0),
    title_normalized TEXT NOT NULL,
    year INTEGER,
    director TEXT,
    runtime TEXT,
    rating TEXT,
    genres TEXT NOT NULL DEFAULT '[]',
    synopsis TEXT,
    poster_url TEXT,
    trailer_url TEXT,
    tmdb_id TEXT,
    source_url TEXT,
    added_at TEXT NOT NULL,
    UNIQUE(session_id, title_normalized)
);

CREATE INDEX IF NOT EXISTS idx_movies_session ON movies(session_id, added_at);

CREATE TABLE IF NOT EXISTS votes (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    movie_a_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    movie_b_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    winner_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    voter_identifier TEXT NOT NULL,
    voted_at TEXT NOT NULL,
    CONSTRAINT chk_different_movies CHECK(movie_a_id <> movie_b_id),
    CONSTRAINT chk_winner_in_pair CHECK(winner_id IN (movie_a_id, movie_b_id))
);

CREATE INDEX IF NOT EXISTS idx_votes_session ON votes(session_id);
CREATE INDEX IF NOT EXISTS idx_votes_voter ON votes(session_id, voter_identifier);
"""

POSTGRES_SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        name TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movies (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
        title TEXT NOT NULL CHECK(length(trim(title)) > 0),
        title_normalized TEXT NOT NULL,
        year INTEGER,
        director TEXT,
        runtime TEXT,
        rating TEXT,
        genres TEXT NOT NULL DEFAULT '[]',
        synopsis TEXT,
        poster_url TEXT,
        trailer_url TEXT,
        tmdb_id TEXT,
        source_url TEXT,
        added_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(session_id, title_normalized)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_movies_session ON movies(session_id, added_at)",
    """
    CREATE TABLE IF NOT EXISTS votes (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
        movie_a_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
        movie_b_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
        winner_id TEXT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
        voter_identifier TEXT NOT NULL,
        voted_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT chk_different_movies CHECK(movie_a_id <> movie_b_id),
        CONSTRAINT chk_winner_in_pair CHECK(winner_id IN (movie_a_id, movie_b_id))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_votes_session ON votes(session_id)",
    "CREATE INDEX IF NOT EXISTS idx_votes_voter ON votes(session_id, voter_identifier)",
]

MOVIE_FIELDS = (
    "year",
    "director",
    "runtime",
    "rating",
    "genres",
    "synopsis",
    "poster_url",
    "trailer_url",
    "tmdb_id",
    "source_url",
)


def _is_postgres(conn: Any) -> bool:
    return conn.__class__.__module__.startswith("psycopg")


def _adapt_sql(conn: Any, sql: str) -> str:
    return sql.replace("?", "%s") if _is_postgres(conn) else sql


def _execute(conn: Any, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Any:
    if _is_postgres(conn):
        cur = conn.cursor()
        cur.execute(_adapt_sql(conn, sql), tuple(params))
        return cur
    return conn.execute(_adapt_sql(conn, sql), tuple(params))


def _to_dict(row: Any) -> dict[str, Any]:
    return row if isinstance(row, dict) else dict(row)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _is_driver_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.Error) or exc.__class__.__module__.startswith("psycopg")


def is_integrity_error(exc: BaseException) -> bool:
    """True for unique, foreign-key and CHECK violations on either backend."""
    return _is_driver_error(exc) and any(
        cls.__name__ == "IntegrityError" for cls in type(exc).__mro__
    )


def _safe_rollback(conn: Any) -> None:
    """Reset failed DB transactions without masking original errors."""
    with suppress(Exception):
        conn.rollback()


@contextmanager
def transaction(conn: Any) -> Iterator[Any]:
    """Commit on success, roll back on any failure.

    Integrity violations propagate unchanged so callers can map them to a
    domain error; every other driver failure becomes a StorageError.
    """
    try:
        yield conn
        conn.commit()
    except Exception as exc:
        _safe_rollback(conn)
        if _is_driver_error(exc) and not is_integrity_error(exc):
            raise StorageError(str(exc)) from exc
        raise


def get_connection(db_path: str) -> Any:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        from psycopg import connect
        from psycopg.rows import dict_row

        return connect(database_url, row_factory=dict_row, autocommit=False)

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_schema(conn: Any) -> None:
    if _is_postgres(conn):
        cur = conn.cursor()
        for statement in POSTGRES_SCHEMA_STATEMENTS:
            cur.execute(statement)
    else:
        conn.executescript(SQLITE_SCHEMA)
    conn.commit()


def normalize_title(title: str) -> str:
    return " ".join(title.strip().split()).lower()


def _movie_from_row(row: Any) -> dict[str, Any]:
    movie = _to_dict(row)
    raw_genres = movie.get("genres")
    if isinstance(raw_genres, str):
        try:
            movie["genres"] = json.loads(raw_genres)
        except ValueError:
            movie["genres"] = []
    elif raw_genres is None:
        movie["genres"] = []
    return movie


def create_session(conn: Any, name: str | None = None) -> dict[str, Any]:
    session_id = str(uuid.uuid4())
    with transaction(conn):
        _execute(
            conn,
            "INSERT INTO sessions (id, name, created_at) VALUES (?, ?, ?)",
            [session_id, name, _now()],
        )
    session = get_session(conn, session_id)
    if session is None:
        raise StorageError(f"session {session_id} was not readable after insert")
    return session


def get_session(conn: Any, session_id: str) -> dict[str, Any] | None:
    row = _execute(conn, "SELECT * FROM sessions WHERE id = ?", [session_id]).fetchone()
    return _to_dict(row) if row else None


def insert_movie(conn: Any, session_id: str, title: str, **fields: Any) -> dict[str, Any]:
    """Insert one movie; the (session, normalized title) unique key decides duplicates."""
    movie_id = str(uuid.uuid4())
    values = {name: fields.get(name) for name in MOVIE_FIELDS}
    values["genres"] = json.dumps(list(values["genres"] or []))
    if values["tmdb_id"] is not None:
        values["tmdb_id"] = str(values["tmdb_id"])
    try:
        with transaction(conn):
            _execute(
                conn,
                f"""
                INSERT INTO movies (
                    id, session_id, title, title_normalized, {", ".join(MOVIE_FIELDS)}, added_at
                ) VALUES (?, ?, ?, ?, {", ".join("?" for _ in MOVIE_FIELDS)}, ?)
                """,
                [
                    movie_id,
                    session_id,
                    title.strip(),
                    normalize_title(title),
                    *(values[name] for name in MOVIE_FIELDS),
                    _now(),
                ],
            )
    except Exception as exc:
        if not is_integrity_error(exc):
            raise
        if find_movie_by_title(conn, session_id, title):
            raise Conflict(f'Movie "{title.strip()}" has already been suggested.') from exc
        raise StorageError(str(exc)) from exc
    movie = get_movie(conn, movie_id)
    if movie is None:
        raise StorageError(f"movie {movie_id} was not readable after insert")
    return movie


def get_movie(conn: Any, movie_id: str) -> dict[str, Any] | None:
    row = _execute(conn, "SELECT * FROM movies WHERE id = ?", [movie_id]).fetchone()
    return _movie_from_row(row) if row else None


def get_session_movie(conn: Any, session_id: str, movie_id: str) -> dict[str, Any] | None:
    row = _execute(
        conn,
        "SELECT * FROM movies WHERE id = ? AND session_id = ?",
        [movie_id, session_id],
    ).fetchone()
    return _movie_from_row(row) if row else None


def find_movie_by_title(conn: Any, session_id: str, title: str) -> dict[str, Any] | None:
    row = _execute(
        conn,
        "SELECT * FROM movies WHERE session_id = ? AND title_normalized = ?",
        [session_id, normalize_title(title)],
    ).fetchone()
    return _movie_from_row(row) if row else None


def get_movies(conn: Any, session_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM movies WHERE session_id = ? ORDER BY added_at ASC, id ASC",
        [session_id],
    ).fetchall()
    return [_movie_from_row(row) for row in rows]


def delete_movie_cascade(conn: Any, movie_id: str) -> bool:
    """Remove a movie and every vote naming it, as one transaction."""
    with transaction(conn):
        _execute(
            conn,
            "DELETE FROM votes WHERE movie_a_id = ? OR movie_b_id = ? OR winner_id = ?",
            [movie_id, movie_id, movie_id],
        )
        cur = _execute(conn, "DELETE FROM movies WHERE id = ?", [movie_id])
        deleted = cur.rowcount > 0
    return deleted


def insert_vote(
    conn: Any,
    session_id: str,
    movie_a_id: str,
    movie_b_id: str,
    winner_id: str,
    voter_identifier: str,
) -> dict[str, Any]:
    vote_id = str(uuid.uuid4())
    with transaction(conn):
        _execute(
            conn,
            """
            INSERT INTO votes (
                id, session_id, movie_a_id, movie_b_id, winner_id, voter_identifier, voted_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [vote_id, session_id, movie_a_id, movie_b_id, winner_id, voter_identifier, _now()],
        )
    row = _execute(conn, "SELECT * FROM votes WHERE id = ?", [vote_id]).fetchone()
    if row is None:
        raise StorageError(f"vote {vote_id} was not readable after insert")
    return _to_dict(row)


def get_session_votes(conn: Any, session_id: str) -> list[dict[str, Any]]:
    rows = _execute(
        conn,
        "SELECT * FROM votes WHERE session_id = ? ORDER BY voted_at ASC",
        [session_id],
    ).fetchall()
    return [_to_dict(row) for row in rows]


def get_voted_pairs(
    conn: Any, session_id: str, voter_identifier: str | None = None
) -> list[tuple[str, str]]:
    """Distinct (movie_a_id, movie_b_id) pairs voted in a session, optionally by one voter."""
    sql = "SELECT DISTINCT movie_a_id, movie_b_id FROM votes WHERE session_id = ?"
    params: list[Any] = [session_id]
    if voter_identifier is not None:
        sql += " AND voter_identifier = ?"
        params.append(voter_identifier)
    rows = _execute(conn, sql, params).fetchall()
    return [
        (str(_to_dict(row)["movie_a_id"]), str(_to_dict(row)["movie_b_id"])) for row in rows
    ]


def get_win_counts(conn: Any, session_id: str) -> dict[str, int]:
    rows = _execute(
        conn,
        """
        SELECT winner_id, COUNT(*) AS wins
        FROM votes
        WHERE session_id = ?
        GROUP BY winner_id
        """,
        [session_id],
    ).fetchall()
    return {str(_to_dict(row)["winner_id"]): int(_to_dict(row)["wins"]) for row in rows}
