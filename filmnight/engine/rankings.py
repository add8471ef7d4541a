from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from filmnight.db.sqlite_client import get_movies, get_win_counts


def rank_movies(
    movies: Sequence[dict[str, Any]], win_counts: Mapping[str, int]
) -> list[dict[str, Any]]:
    """Order movies by wins (desc), then title and id (ordinal, asc).

    Every movie appears, zero-win movies included. Sorting happens here rather
    than in SQL so the order is the same under SQLite and Postgres collations.
    """
    ranked = [{**movie, "wins": int(win_counts.get(str(movie["id"]), 0))} for movie in movies]
    ranked.sort(key=lambda m: (-m["wins"], str(m["title"]), str(m["id"])))
    return ranked


def get_session_rankings(conn: Any, session_id: str) -> list[dict[str, Any]]:
    movies = get_movies(conn, session_id)
    if not movies:
        return []
    return rank_movies(movies, get_win_counts(conn, session_id))
