from __future__ import annotations

import pytest
import requests

from filmnight.enrichment.page_scraper import USER_AGENT, extract_page_hints, fetch_page_hints
from filmnight.errors import EnrichmentError


class _DummyResponse:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


def test_extract_page_hints_prefers_open_graph_tags():
    html = """
    <html>
      <head>
        <title>Ignored | Site</title>
        <meta property="og:title" content="Parasite (2019) - Official Trailer" />
        <meta name="description" content="  A poor family   schemes its way in. " />
        <meta property="article:published_time" content="2019-05-30T10:00:00Z" />
      </head>
    </html>
    """
    hints = extract_page_hints(html)
    assert hints["title"] == "Parasite (2019) - Official Trailer"
    assert hints["description"] == "A poor family schemes its way in."
    assert hints["year"] == 2019


def test_extract_page_hints_falls_back_to_title_then_h1():
    assert extract_page_hints("<html><head><title> Heat </title></head></html>")["title"] == "Heat"
    hints = extract_page_hints("<html><body><h1>Alien</h1><time datetime='1979-05-25'>x</time>")
    assert hints["title"] == "Alien"
    assert hints["year"] == 1979


def test_extract_page_hints_empty_page():
    hints = extract_page_hints("<html></html>")
    assert hints == {"title": None, "description": None, "date": None, "year": None}


def test_unparseable_date_gives_no_year():
    hints = extract_page_hints('<meta name="date" content="sometime soon">')
    assert hints["date"] == "sometime soon"
    assert hints["year"] is None


def test_fetch_page_hints_sends_user_agent(monkeypatch):
    def _fake_get(url: str, timeout: float, headers: dict[str, str]):
        assert url == "https://example.com/watch"
        assert timeout == 3.0
        assert headers["User-Agent"] == USER_AGENT
        return _DummyResponse('<meta property="og:title" content="Heat">')

    monkeypatch.setattr("filmnight.enrichment.page_scraper.requests.get", _fake_get)
    assert fetch_page_hints("https://example.com/watch", timeout=3.0)["title"] == "Heat"


def test_fetch_page_hints_wraps_http_errors(monkeypatch):
    monkeypatch.setattr(
        "filmnight.enrichment.page_scraper.requests.get",
        lambda url, timeout, headers: _DummyResponse("", status=503),
    )
    with pytest.raises(EnrichmentError):
        fetch_page_hints("https://example.com/down")


def test_fetch_page_hints_wraps_timeouts(monkeypatch):
    def _timeout(url, timeout, headers):
        raise requests.Timeout("slow")

    monkeypatch.setattr("filmnight.enrichment.page_scraper.requests.get", _timeout)
    with pytest.raises(EnrichmentError, match="slow"):
        fetch_page_hints("https://example.com/slow")
