from __future__ import annotations

import random
from collections import Counter

import pytest

from filmnight.engine.pairs import (
    enumerate_pairs,
    iter_pairs,
    pair_key,
    select_next_pair,
    voted_pair_keys,
)


def _movies(*ids: str) -> list[dict[str, str]]:
    return [{"id": movie_id, "title": movie_id.upper()} for movie_id in ids]


def test_pair_key_is_order_insensitive():
    assert pair_key("b-2", "a-1") == pair_key("a-1", "b-2") == "a-1_b-2"


@pytest.mark.parametrize("count", [0, 1, 2, 3, 5, 8])
def test_enumerate_pairs_returns_every_unordered_pair_once(count):
    movies = _movies(*(f"m{i}" for i in range(count)))
    pairs = enumerate_pairs(movies)
    assert len(pairs) == count * (count - 1) // 2
    keys = [pair_key(a["id"], b["id"]) for a, b in pairs]
    assert len(set(keys)) == len(keys)


def test_enumerate_pairs_orders_each_pair_by_input_position():
    movies = _movies("z", "a", "m")
    pairs = [(a["id"], b["id"]) for a, b in enumerate_pairs(movies)]
    assert pairs == [("z", "a"), ("z", "m"), ("a", "m")]


def test_iter_pairs_is_lazy():
    movies = _movies("a", "b", "c")
    iterator = iter_pairs(movies)
    first = next(iterator)
    assert (first[0]["id"], first[1]["id"]) == ("a", "b")


def test_voted_pair_keys_canonicalizes_stored_rows():
    assert voted_pair_keys([("b", "a"), ("a", "b"), ("c", "a")]) == {"a_b", "a_c"}


def test_select_next_pair_never_returns_voted_pair():
    movies = _movies("a", "b", "c", "d")
    voted = {"a_b", "a_c", "b_d"}
    for seed in range(50):
        selection = select_next_pair(movies, voted, rng=random.Random(seed))
        assert selection.pair is not None
        a, b = selection.pair
        assert pair_key(a["id"], b["id"]) not in voted
        assert selection.remaining_pairs == 3
        assert selection.total_pairs == 6


@pytest.mark.parametrize("ids", [(), ("a",)])
def test_select_next_pair_exhausted_with_fewer_than_two_movies(ids):
    selection = select_next_pair(_movies(*ids), set())
    assert selection.exhausted
    assert selection.total_pairs == 0


def test_select_next_pair_two_movies_no_votes_returns_the_only_pair():
    selection = select_next_pair(_movies("a", "b"), set())
    assert not selection.exhausted
    a, b = selection.pair
    assert {a["id"], b["id"]} == {"a", "b"}


def test_exhaustion_is_stable_across_repeated_calls():
    movies = _movies("a", "b", "c")
    voted = {"a_b", "a_c", "b_c"}
    results = [select_next_pair(movies, voted) for _ in range(10)]
    assert all(result.exhausted for result in results)
    assert all(result.remaining_pairs == 0 for result in results)


def test_new_movie_reopens_an_exhausted_voter():
    movies = _movies("a", "b")
    voted = {"a_b"}
    assert select_next_pair(movies, voted).exhausted
    selection = select_next_pair(movies + _movies("c"), voted)
    assert not selection.exhausted
    assert "c" in {selection.pair[0]["id"], selection.pair[1]["id"]}


def test_keys_for_deleted_movies_are_ignored():
    movies = _movies("a", "b")
    selection = select_next_pair(movies, {"a_gone", "b_gone"})
    assert selection.remaining_pairs == 1
    assert selection.total_pairs == 1


def test_selection_spreads_over_candidates():
    movies = _movies("a", "b", "c", "d")
    rng = random.Random(7)
    seen = Counter()
    for _ in range(300):
        a, b = select_next_pair(movies, set(), rng=rng).pair
        seen[pair_key(a["id"], b["id"])] += 1
    assert len(seen) == 6
    assert max(seen.values()) < 120
