from __future__ import annotations

from typing import Any


def generate_invite(
    session_name: str | None, session_url: str, leader: dict[str, Any] | None
) -> str:
    lines = [
        f"Help pick tonight's movie: {session_name or 'Film Night'}",
        f"Join here: {session_url}",
    ]
    if leader and leader.get("wins"):
        lines.append(f"Current favourite: {leader.get('title', 'TBD')} ({leader['wins']} wins)")
    lines.append("Add your picks, then choose between pairs until you run out.")
    return "\n".join(lines)
