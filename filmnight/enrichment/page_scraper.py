from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from filmnight.errors import EnrichmentError

TITLE_META_KEYS = ("og:title", "twitter:title")
DESCRIPTION_META_KEYS = ("og:description", "twitter:description", "description")
DATE_META_KEYS = (
    "article:published_time",
    "og:release_date",
    "video:release_date",
    "datePublished",
    "date",
)

USER_AGENT = "Mozilla/5.0 (compatible; FilmNight/1.0)"


def _meta_content(soup: BeautifulSoup, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find(
            "meta", attrs={"name": key}
        ) or soup.find("meta", attrs={"itemprop": key})
        if tag is None:
            continue
        content = str(tag.get("content") or "").strip()
        if content:
            return content
    return None


def _clean_text(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = re.sub(r"\s+", " ", text).strip()
    return cleaned or None


def _year_from_date(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        default_dt = datetime(datetime.now(UTC).year, 1, 1, tzinfo=UTC)
        return date_parser.parse(raw, default=default_dt).year
    except (ValueError, TypeError, OverflowError):
        return None


def extract_page_hints(html: str) -> dict[str, Any]:
    """Pull title/description/date hints out of a movie page.

    Returns a dict with ``title``, ``description``, ``date`` and ``year``; any
    of them may be None.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = _meta_content(soup, TITLE_META_KEYS)
    if not title and soup.title is not None:
        title = soup.title.get_text(" ", strip=True)
    if not title:
        h1 = soup.select_one("h1")
        title = h1.get_text(" ", strip=True) if h1 is not None else None
    date_hint = _meta_content(soup, DATE_META_KEYS)
    if not date_hint:
        time_tag = soup.select_one("time[datetime]")
        date_hint = str(time_tag.get("datetime")) if time_tag is not None else None
    return {
        "title": _clean_text(title),
        "description": _clean_text(_meta_content(soup, DESCRIPTION_META_KEYS)),
        "date": _clean_text(date_hint),
        "year": _year_from_date(date_hint),
    }


def fetch_page_hints(url: str, timeout: float = 10.0) -> dict[str, Any]:
    try:
        resp = requests.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise EnrichmentError(f"could not fetch {url}: {exc}") from exc
    return extract_page_hints(resp.text)
