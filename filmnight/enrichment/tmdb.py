from __future__ import annotations

import re
from typing import Any

import requests

from filmnight.errors import EnrichmentError

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

TITLE_YEAR_PATTERN = re.compile(r"^(.*?)(?:\s*\((\d{4})\))?\s*$", re.DOTALL)


def parse_title_and_year(raw: str | None) -> tuple[str | None, int | None]:
    """Split "Movie Title (1999)" into ("Movie Title", 1999)."""
    if not raw or not raw.strip():
        return None, None
    match = TITLE_YEAR_PATTERN.match(raw.strip())
    if not match or not match.group(1).strip():
        return raw.strip(), None
    year = int(match.group(2)) if match.group(2) else None
    return match.group(1).strip(), year


def _get_json(url: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
    try:
        resp = requests.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise EnrichmentError(f"TMDB request to {url} failed: {exc}") from exc
    return payload if isinstance(payload, dict) else {}


def pick_director(details: dict[str, Any]) -> str | None:
    crew = (details.get("credits") or {}).get("crew") or []
    for person in crew:
        if person.get("job") == "Director" and person.get("name"):
            return str(person["name"])
    return None


def pick_trailer_url(details: dict[str, Any]) -> str | None:
    """Prefer an official YouTube trailer, then any trailer, then teasers."""
    videos = (details.get("videos") or {}).get("results") or []
    youtube = [
        v for v in videos if v.get("site") == "YouTube" and v.get("type") in {"Trailer", "Teaser"}
    ]
    for kind, official_only in (
        ("Trailer", True),
        ("Trailer", False),
        ("Teaser", True),
        ("Teaser", False),
    ):
        for video in youtube:
            if video.get("type") == kind and (video.get("official") or not official_only):
                if video.get("key"):
                    return f"{YOUTUBE_WATCH_URL}{video['key']}"
    return None


def format_movie_details(details: dict[str, Any]) -> dict[str, Any]:
    release_date = str(details.get("release_date") or "")
    vote_average = details.get("vote_average")
    runtime = details.get("runtime")
    poster_path = details.get("poster_path")
    return {
        "title": details.get("title"),
        "year": int(release_date[:4]) if release_date[:4].isdigit() else None,
        "director": pick_director(details),
        "runtime": f"{runtime} min" if runtime else None,
        "genres": [g["name"] for g in details.get("genres") or [] if g.get("name")],
        "synopsis": details.get("overview") or None,
        "poster_url": f"{POSTER_BASE_URL}{poster_path}" if poster_path else None,
        "rating": f"{float(vote_average):.1f}/10 (TMDB)" if vote_average else None,
        "trailer_url": pick_trailer_url(details),
        "tmdb_id": str(details["id"]) if details.get("id") is not None else None,
    }


def search_movie_id(
    title: str,
    year: int | None,
    api_key: str,
    base_url: str,
    timeout: float,
) -> int | None:
    search_url = f"{base_url}/search/movie"
    params: dict[str, Any] = {"api_key": api_key, "query": title}
    if year:
        params["primary_release_year"] = year
    results = _get_json(search_url, params, timeout).get("results") or []
    if not results and year:
        # A wrong year hint should not hide the movie entirely.
        results = _get_json(search_url, {"api_key": api_key, "query": title}, timeout).get(
            "results"
        ) or []
    if not results:
        return None
    return int(results[0]["id"])


def fetch_movie_details(
    title: str,
    year: int | None,
    api_key: str,
    base_url: str = "https://api.themoviedb.org/3",
    timeout: float = 10.0,
) -> dict[str, Any] | None:
    """Best-effort TMDB lookup; None when nothing matches."""
    if not api_key:
        return None
    try:
        movie_id = search_movie_id(title, year, api_key, base_url, timeout)
        if movie_id is None:
            return None
        details = _get_json(
            f"{base_url}/movie/{movie_id}",
            {"api_key": api_key, "append_to_response": "credits,videos"},
            timeout,
        )
        if not details:
            return None
        return format_movie_details(details)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise EnrichmentError(f"unexpected TMDB payload for {title!r}: {exc!r}") from exc
