"""Best-effort movie metadata enrichment.

Stages run in order: page hints (when a link was given), AI title cleanup,
TMDB lookup. Each stage may fail or time out; a failure is logged and the
next stage works with whatever is known so far. The caller always gets at
least the fields the user typed in.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI

from filmnight.config.settings import Settings
from filmnight.enrichment.page_scraper import fetch_page_hints
from filmnight.enrichment.title_extractor import extract_title_with_ai
from filmnight.enrichment.tmdb import fetch_movie_details, parse_title_and_year
from filmnight.errors import EnrichmentError

logger = logging.getLogger(__name__)


def _has_value(value: Any) -> bool:
    return value not in (None, "", [], {})


def _log_stage_failure(stage: str, error: Exception) -> None:
    logger.warning("[ENRICHMENT] stage=%s status=failed error=%s", stage, error)


def _title_from_link(
    url: str, settings: Settings, ai_client: OpenAI | None
) -> tuple[str | None, int | None]:
    try:
        hints = fetch_page_hints(url, timeout=settings.enrichment_timeout_seconds)
    except EnrichmentError as exc:
        _log_stage_failure("page", exc)
        return None, None
    if not hints.get("title"):
        logger.info("[ENRICHMENT] stage=page status=empty url=%s", url)
        return None, None

    if ai_client is not None:
        try:
            extracted = extract_title_with_ai(ai_client, hints, model=settings.openai_model)
        except EnrichmentError as exc:
            _log_stage_failure("ai_title", exc)
            extracted = None
        if extracted:
            return extracted["title"], extracted["year"] or hints.get("year")

    title, year = parse_title_and_year(hints["title"])
    return title, year or hints.get("year")


def enrich_movie(
    manual: dict[str, Any],
    settings: Settings,
    url: str | None = None,
    ai_client: OpenAI | None = None,
) -> dict[str, Any]:
    """Merge manual fields with whatever the external sources can add.

    Non-empty values from TMDB win over manual ones; manual values fill the
    gaps. ``title`` may still be None when neither the user nor any source
    produced one.
    """
    details = {key: value for key, value in manual.items() if _has_value(value)}
    if url:
        details["source_url"] = url
    if not settings.enrichment_enabled:
        return details

    search_title = details.get("title")
    search_year = details.get("year")

    if url:
        link_title, link_year = _title_from_link(url, settings, ai_client)
        if link_title:
            search_title = link_title
            search_year = link_year or search_year
            details.setdefault("title", link_title)
            if link_year:
                details.setdefault("year", link_year)

    if search_title and settings.tmdb_api_key:
        try:
            found = fetch_movie_details(
                search_title,
                search_year,
                api_key=settings.tmdb_api_key,
                base_url=settings.tmdb_base_url,
                timeout=settings.enrichment_timeout_seconds,
            )
        except EnrichmentError as exc:
            _log_stage_failure("tmdb", exc)
            found = None
        if found:
            details.update({key: value for key, value in found.items() if _has_value(value)})
        else:
            logger.info("[ENRICHMENT] stage=tmdb status=no_match title=%s", search_title)

    return details
