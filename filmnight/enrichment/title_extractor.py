from __future__ import annotations

import json
import re
from typing import Any

from openai import OpenAI

from filmnight.errors import EnrichmentError

DEFAULT_MODEL = "gpt-4.1-mini"

JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```|(\{.*\})", re.DOTALL)


def build_title_prompt(hints: dict[str, Any]) -> str:
    prompt = (
        "You are an expert at identifying movie titles from noisy text.\n"
        f'I have an extracted title from a webpage: "{hints.get("title")}".\n'
    )
    if hints.get("description"):
        prompt += f'The page description might give more context: "{hints["description"]}".\n'
    if hints.get("date"):
        prompt += f'A date associated with the page is "{hints["date"]}"; it may be the release year.\n'
    prompt += (
        "The title may include director names, uploader details or quality markers "
        '("HD", "4K", "Official Trailer", "Full Movie"). Extract the canonical movie title '
        "and its release year. For example, \"Stanley Kubrick's The Shining (1980) - Full Movie HD\" "
        'gives "The Shining" and 1980.\n'
        'Answer ONLY with a JSON object with keys "title" (string or null) and "year" '
        '(number or null), e.g. {"title": "The Shining", "year": 1980}.'
    )
    return prompt


def parse_title_response(text: str) -> dict[str, Any] | None:
    """Read {"title", "year"} out of a model reply, tolerating markdown fences."""
    text = text.strip()
    match = JSON_BLOCK_PATTERN.search(text)
    if not match:
        return None
    try:
        payload = json.loads(match.group(1) or match.group(2))
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    title = str(payload.get("title") or "").strip()
    if not title:
        return None
    try:
        year = int(payload["year"]) if payload.get("year") else None
    except (TypeError, ValueError):
        year = None
    return {"title": title, "year": year}


def extract_title_with_ai(
    client: OpenAI, hints: dict[str, Any], model: str = DEFAULT_MODEL
) -> dict[str, Any] | None:
    if not hints.get("title"):
        return None
    try:
        response = client.responses.create(model=model, input=build_title_prompt(hints))
    except Exception as exc:
        raise EnrichmentError(f"title extraction failed: {exc}") from exc
    return parse_title_response(response.output_text)
