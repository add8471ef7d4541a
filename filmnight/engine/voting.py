from __future__ import annotations

import logging
from typing import Any

from filmnight.db.sqlite_client import (
    get_session,
    get_session_movie,
    get_voted_pairs,
    insert_vote,
    is_integrity_error,
)
from filmnight.engine.pairs import voted_pair_keys
from filmnight.errors import InvalidRequest, NotFound, StorageError

logger = logging.getLogger(__name__)


def _require(value: Any, field: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise InvalidRequest(f"{field} is required.")
    return text


def validate_vote(movie_a_id: Any, movie_b_id: Any, winner_id: Any, voter_identifier: Any) -> None:
    """Input checks that need no storage access, in the order they are reported."""
    missing = [
        name
        for name, value in (
            ("movieAId", movie_a_id),
            ("movieBId", movie_b_id),
            ("winnerId", winner_id),
            ("voterIdentifier", voter_identifier),
        )
        if value is None or not str(value).strip()
    ]
    if missing:
        raise InvalidRequest(f"{', '.join(missing)} required.")
    if str(movie_a_id) == str(movie_b_id):
        raise InvalidRequest("Movie A and Movie B cannot be the same.")
    if str(winner_id) not in {str(movie_a_id), str(movie_b_id)}:
        raise InvalidRequest("Winner must be one of Movie A or Movie B.")


def record_vote(
    conn: Any,
    session_id: str,
    movie_a_id: str,
    movie_b_id: str,
    winner_id: str,
    voter_identifier: str,
) -> dict[str, Any]:
    """Validate and persist one immutable pairwise outcome.

    Repeat votes by the same voter on the same pair are stored as new rows and
    each one counts toward wins.
    """
    session_id = _require(session_id, "sessionId")
    validate_vote(movie_a_id, movie_b_id, winner_id, voter_identifier)
    movie_a_id, movie_b_id, winner_id = str(movie_a_id), str(movie_b_id), str(winner_id)
    voter_identifier = str(voter_identifier).strip()

    if get_session(conn, session_id) is None:
        raise NotFound("Session not found.")
    if get_session_movie(conn, session_id, movie_a_id) is None:
        raise NotFound("Movie A not found in this session.")
    if get_session_movie(conn, session_id, movie_b_id) is None:
        raise NotFound("Movie B not found in this session.")

    try:
        vote = insert_vote(conn, session_id, movie_a_id, movie_b_id, winner_id, voter_identifier)
    except Exception as exc:
        if not is_integrity_error(exc):
            raise
        # A movie can vanish between the checks above and the insert.
        if get_session_movie(conn, session_id, movie_a_id) is None or (
            get_session_movie(conn, session_id, movie_b_id) is None
        ):
            raise NotFound("Movie was deleted while voting.") from exc
        message = str(exc)
        if "chk_winner_in_pair" in message:
            raise InvalidRequest("Winner must be one of Movie A or Movie B.") from exc
        if "chk_different_movies" in message:
            raise InvalidRequest("Movie A and Movie B cannot be the same.") from exc
        raise StorageError(message) from exc

    logger.info(
        "vote recorded session=%s pair=%s/%s winner=%s",
        session_id,
        movie_a_id,
        movie_b_id,
        winner_id,
    )
    return vote


def get_voter_pair_keys(conn: Any, session_id: str, voter_identifier: str | None) -> set[str]:
    """The pair keys one voter has already voted on in a session."""
    if not voter_identifier:
        return set()
    return voted_pair_keys(get_voted_pairs(conn, session_id, voter_identifier))


def get_session_pair_keys(conn: Any, session_id: str) -> set[str]:
    """Pair keys voted by anyone in the session."""
    return voted_pair_keys(get_voted_pairs(conn, session_id))
