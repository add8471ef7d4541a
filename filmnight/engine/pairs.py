"""Pair enumeration and per-voter pair selection.

Selection is a pure function of (current movies, the voter's voted pair
keys). Nothing about "the current pair" is stored anywhere, so a vote, an
added movie or a deleted movie is picked up on the very next call.
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from itertools import combinations
from typing import Any

Movie = dict[str, Any]
Pair = tuple[Movie, Movie]


def pair_key(movie_a_id: Any, movie_b_id: Any) -> str:
    """Canonical key for an unordered pair: both ids sorted, joined with '_'."""
    first, second = sorted((str(movie_a_id), str(movie_b_id)))
    return f"{first}_{second}"


def iter_pairs(movies: Sequence[Movie]) -> Iterator[Pair]:
    """Yield every unordered pair, lower input index first."""
    return combinations(movies, 2)


def enumerate_pairs(movies: Sequence[Movie]) -> list[Pair]:
    return list(iter_pairs(movies))


def voted_pair_keys(pairs: Iterable[tuple[Any, Any]]) -> set[str]:
    """Canonicalize stored (movie_a_id, movie_b_id) rows into a key set."""
    return {pair_key(a, b) for a, b in pairs}


@dataclass(frozen=True)
class PairSelection:
    """Result of asking for the next comparison to show one voter."""

    pair: Pair | None
    total_pairs: int
    remaining_pairs: int

    @property
    def exhausted(self) -> bool:
        return self.pair is None


def select_next_pair(
    movies: Sequence[Movie],
    voted_keys: Iterable[str],
    rng: random.Random | None = None,
) -> PairSelection:
    """Pick uniformly among pairs this voter has not voted on yet.

    Keys in ``voted_keys`` that mention movies no longer in ``movies`` are
    simply never matched. An empty candidate set (including fewer than two
    movies) is the exhausted state, not an error.
    """
    seen = set(voted_keys)
    total = 0
    candidates: list[Pair] = []
    for movie_a, movie_b in iter_pairs(movies):
        total += 1
        if pair_key(movie_a["id"], movie_b["id"]) not in seen:
            candidates.append((movie_a, movie_b))
    if not candidates:
        return PairSelection(pair=None, total_pairs=total, remaining_pairs=0)
    chooser = rng or random
    return PairSelection(
        pair=chooser.choice(candidates),
        total_pairs=total,
        remaining_pairs=len(candidates),
    )
