from __future__ import annotations

import logging
import random
from typing import Any

from openai import OpenAI

from filmnight.config.settings import Settings, load_settings
from filmnight.db.sqlite_client import (
    create_session,
    delete_movie_cascade,
    find_movie_by_title,
    get_movie,
    get_movies,
    get_session,
    get_session_movie,
    insert_movie,
)
from filmnight.engine.pairs import PairSelection, select_next_pair
from filmnight.engine.rankings import get_session_rankings
from filmnight.engine.voting import get_session_pair_keys, get_voter_pair_keys, record_vote
from filmnight.enrichment.pipeline import enrich_movie
from filmnight.errors import Conflict, InvalidRequest, NotFound

logger = logging.getLogger(__name__)

MAX_SESSION_NAME_LENGTH = 255


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_year(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        year = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest(f"Year must be a number, got {value!r}.") from exc
    if not 1870 <= year <= 2100:
        raise InvalidRequest(f"Year {year} is out of range.")
    return year


def require_session(conn: Any, session_id: str) -> dict[str, Any]:
    session = get_session(conn, session_id) if _clean(session_id) else None
    if session is None:
        raise NotFound("Session not found.")
    return session


def create_new_session(conn: Any, name: str | None = None) -> dict[str, Any]:
    cleaned = _clean(name)
    if cleaned and len(cleaned) > MAX_SESSION_NAME_LENGTH:
        raise InvalidRequest(f"Session name must be at most {MAX_SESSION_NAME_LENGTH} characters.")
    session = create_session(conn, cleaned)
    logger.info("session created id=%s", session["id"])
    return session


def get_session_state(
    conn: Any, session_id: str, voter_identifier: str | None = None
) -> dict[str, Any]:
    """Session row plus current movies and the pair keys this voter already judged."""
    session = require_session(conn, session_id)
    return {
        **session,
        "movies": get_movies(conn, session_id),
        "user_voted_pairs": get_voter_pair_keys(conn, session_id, _clean(voter_identifier)),
        "globally_voted_pairs": get_session_pair_keys(conn, session_id),
    }


def get_next_pair(
    conn: Any,
    session_id: str,
    voter_identifier: str | None,
    rng: random.Random | None = None,
) -> PairSelection:
    state = get_session_state(conn, session_id, voter_identifier)
    return select_next_pair(state["movies"], state["user_voted_pairs"], rng=rng)


def add_movie(
    conn: Any,
    session_id: str,
    *,
    url: str | None = None,
    title: str | None = None,
    year: Any = None,
    director: str | None = None,
    runtime: str | None = None,
    genres: list[str] | None = None,
    synopsis: str | None = None,
    poster_url: str | None = None,
    rating: str | None = None,
    settings: Settings | None = None,
    ai_client: OpenAI | None = None,
    enrich: bool = True,
) -> dict[str, Any]:
    url = _clean(url)
    title = _clean(title)
    if not url and not title:
        raise InvalidRequest("A movie URL or a manual title is required.")
    require_session(conn, session_id)
    if title and find_movie_by_title(conn, session_id, title):
        raise Conflict(f'Movie "{title}" has already been suggested.')

    manual = {
        "title": title,
        "year": _parse_year(year),
        "director": _clean(director),
        "runtime": _clean(runtime),
        "genres": [g.strip() for g in genres or [] if g and g.strip()],
        "synopsis": _clean(synopsis),
        "poster_url": _clean(poster_url),
        "rating": _clean(rating),
    }
    if enrich:
        details = enrich_movie(manual, settings or load_settings(), url=url, ai_client=ai_client)
    else:
        details = {key: value for key, value in manual.items() if value not in (None, [])}
        if url:
            details["source_url"] = url

    final_title = _clean(details.pop("title", None))
    if not final_title:
        raise InvalidRequest("Could not work out a movie title from that link; please type one.")
    movie = insert_movie(conn, session_id, final_title, **details)
    logger.info("movie added session=%s id=%s title=%s", session_id, movie["id"], movie["title"])
    return movie


def delete_movie(conn: Any, movie_id: str, session_id: str | None = None) -> dict[str, Any]:
    """Delete a movie and, in the same transaction, every vote that names it."""
    movie_id = _clean(movie_id) or ""
    if not movie_id:
        raise InvalidRequest("Movie ID is required.")
    movie = (
        get_session_movie(conn, session_id, movie_id) if session_id else get_movie(conn, movie_id)
    )
    if movie is None or not delete_movie_cascade(conn, movie_id):
        raise NotFound("Movie not found or already deleted.")
    logger.info("movie deleted session=%s id=%s", movie["session_id"], movie_id)
    return {"deleted": True, "movie_id": movie_id}


def cast_pairwise_vote(
    conn: Any,
    session_id: str,
    movie_a_id: str,
    movie_b_id: str,
    winner_id: str,
    voter_identifier: str,
) -> dict[str, Any]:
    return record_vote(conn, session_id, movie_a_id, movie_b_id, winner_id, voter_identifier)


def get_rankings(conn: Any, session_id: str) -> list[dict[str, Any]]:
    return get_session_rankings(conn, session_id)


def get_session_url(base_url: str, session_id: str) -> str:
    return f"{base_url}?session={session_id}"
