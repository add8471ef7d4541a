from __future__ import annotations

import logging
import uuid
from typing import Any

import streamlit as st
from openai import OpenAI

from filmnight.config.settings import (
    ensure_runtime_dirs,
    load_settings,
    missing_optional_keys,
    validate_settings,
)
from filmnight.db.sqlite_client import get_connection, init_schema
from filmnight.errors import FilmNightError, NotFound
from filmnight.sessions.manager import (
    add_movie,
    cast_pairwise_vote,
    create_new_session,
    delete_movie,
    get_next_pair,
    get_rankings,
    get_session_state,
    get_session_url,
)
from filmnight.utils.health import readiness
from filmnight.utils.invite_text import generate_invite

logger = logging.getLogger(__name__)


@st.cache_resource
def get_runtime() -> dict[str, Any]:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ensure_runtime_dirs(settings)
    errors = validate_settings(settings)
    warnings = missing_optional_keys(settings)
    try:
        conn = get_connection(settings.sqlite_db_path)
        try:
            init_schema(conn)
        finally:
            conn.close()
    except Exception as exc:
        errors.append(f"Database initialization failed: {exc}")

    client: OpenAI | None = None
    if settings.enrichment_enabled and settings.openai_api_key:
        try:
            client = OpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.enrichment_timeout_seconds,
                max_retries=1,
            )
        except Exception as exc:
            warnings.append(f"OpenAI client initialization degraded: {exc}")
    return {
        "settings": settings,
        "client": client,
        "errors": errors,
        "warnings": warnings,
    }


def get_conn() -> Any | None:
    """The database connection owned by this browser session.

    Connections are never shared between sessions, so one voter's rollback
    cannot discard another voter's pending write.
    """
    if st.session_state.get("conn") is None:
        try:
            st.session_state.conn = get_connection(get_runtime()["settings"].sqlite_db_path)
        except Exception:
            logger.exception("could not open database connection")
            return None
    return st.session_state.conn


def init_state() -> None:
    defaults = {
        "session_id": st.query_params.get("session"),
        "voter_ids": {},
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _voter_id(session_id: str) -> str:
    """One opaque voter identifier per browser session and film-night session."""
    voter_ids: dict[str, str] = st.session_state.voter_ids
    if session_id not in voter_ids:
        voter_ids[session_id] = str(uuid.uuid4())
    return voter_ids[session_id]


def _open_session(session_id: str) -> None:
    st.session_state.session_id = session_id
    st.query_params["session"] = session_id
    st.rerun()


def render_landing() -> None:
    runtime = get_runtime()
    conn = get_conn()
    col_a, col_b = st.columns(2)
    with col_a:
        st.subheader("Start a film night")
        name = st.text_input("Session name (optional)", key="create_session_name")
        if st.button("Create Session"):
            try:
                session = create_new_session(conn, name)
            except FilmNightError as exc:
                st.error(str(exc))
            else:
                _open_session(session["id"])
    with col_b:
        st.subheader("Join a film night")
        session_input = st.text_input("Session link or ID", key="join_session_input")
        if st.button("Join Session"):
            _open_session(session_input.split("session=")[-1].strip())


def _movie_caption(movie: dict[str, Any]) -> str:
    parts = [
        str(movie["year"]) if movie.get("year") else "",
        movie.get("director") or "",
        movie.get("runtime") or "",
        ", ".join(movie.get("genres") or []),
    ]
    return " | ".join(part for part in parts if part)


def render_add_movie(session_id: str) -> None:
    runtime = get_runtime()
    with st.form("add_movie_form", clear_on_submit=True):
        st.markdown("**Suggest a movie**")
        url = st.text_input("Link to a movie page (optional)")
        title = st.text_input("Or type the title")
        year = st.text_input("Year (optional)")
        submitted = st.form_submit_button("Add movie")
    added = st.session_state.pop("added_movie_title", None)
    if added:
        st.success(f"Added {added}.")
    if not submitted:
        return
    try:
        with st.spinner("Looking up movie details..."):
            movie = add_movie(
                get_conn(),
                session_id,
                url=url,
                title=title,
                year=year,
                settings=runtime["settings"],
                ai_client=runtime["client"],
            )
    except FilmNightError as exc:
        st.error(str(exc))
        return
    st.session_state.added_movie_title = movie["title"]
    st.rerun()


def render_movies(session_id: str, movies: list[dict[str, Any]]) -> None:
    conn = get_conn()
    st.markdown(f"**Nominated movies ({len(movies)})**")
    if not movies:
        st.info("No movies yet. Add the first one above.")
    for movie in movies:
        col_info, col_delete = st.columns([5, 1])
        with col_info:
            st.markdown(f"**{movie['title']}**")
            caption = _movie_caption(movie)
            if caption:
                st.caption(caption)
        with col_delete:
            if st.button("Remove", key=f"delete_{movie['id']}"):
                try:
                    delete_movie(conn, movie["id"], session_id=session_id)
                except FilmNightError as exc:
                    st.error(str(exc))
                st.rerun()


def render_matchup(session_id: str, voter_id: str) -> None:
    conn = get_conn()
    selection = get_next_pair(conn, session_id, voter_id)
    st.subheader("Which would you rather watch?")
    if selection.total_pairs == 0:
        st.info("Add at least two movies to start comparing.")
        return
    if selection.exhausted:
        st.success("You've voted on all available pairs! New pairs appear when movies are added.")
        return
    done = selection.total_pairs - selection.remaining_pairs
    st.progress(done / selection.total_pairs, text=f"{done} of {selection.total_pairs} pairs")
    movie_a, movie_b = selection.pair
    col_a, col_b = st.columns(2)
    for col, movie in ((col_a, movie_a), (col_b, movie_b)):
        with col:
            if movie.get("poster_url"):
                st.image(movie["poster_url"], use_container_width=True)
            if movie.get("synopsis"):
                st.caption(movie["synopsis"][:300])
            if st.button(movie["title"], key=f"pick_{movie['id']}", use_container_width=True):
                try:
                    cast_pairwise_vote(
                        conn, session_id, movie_a["id"], movie_b["id"], movie["id"], voter_id
                    )
                except FilmNightError as exc:
                    st.error(str(exc))
                st.rerun()


def render_rankings(session_id: str) -> list[dict[str, Any]]:
    rankings = get_rankings(get_conn(), session_id)
    st.subheader("Rankings")
    if not rankings:
        st.info("No rankings yet.")
        return rankings
    st.table(
        [
            {"#": idx, "Movie": movie["title"], "Wins": movie["wins"]}
            for idx, movie in enumerate(rankings, start=1)
        ]
    )
    return rankings


def render_session(session_id: str) -> None:
    runtime = get_runtime()
    voter_id = _voter_id(session_id)
    try:
        state = get_session_state(get_conn(), session_id, voter_id)
    except NotFound:
        st.error("Session not found.")
        if st.button("Back"):
            st.session_state.session_id = None
            st.query_params.clear()
            st.rerun()
        return
    st.title(state.get("name") or "Film Night")
    left, right = st.columns([3, 2])
    with left:
        render_matchup(session_id, voter_id)
        rankings = render_rankings(session_id)
    with right:
        render_add_movie(session_id)
        render_movies(session_id, state["movies"])
    session_url = get_session_url(runtime["settings"].base_url, session_id)
    st.text_area(
        "Invite text",
        value=generate_invite(state.get("name"), session_url, rankings[0] if rankings else None),
        height=110,
    )


def main() -> None:
    st.set_page_config(page_title="Film Night", page_icon=":clapper:", layout="wide")
    init_state()
    runtime = get_runtime()
    if runtime["errors"]:
        st.error("Startup validation failed.")
        for error in runtime["errors"]:
            st.write(f"- {error}")
        return
    for warning in runtime["warnings"]:
        st.warning(warning)
    status = readiness(get_conn(), runtime["settings"])
    if not status["ok"]:
        st.error("Readiness check failed.")
        st.json(status)
        return

    if st.session_state.session_id:
        render_session(st.session_state.session_id)
    else:
        st.title("Film Night")
        render_landing()


if __name__ == "__main__":
    main()
