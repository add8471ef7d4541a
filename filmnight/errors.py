"""Error types shared by the voting engine, the store and the enrichment chain."""

from __future__ import annotations


class FilmNightError(Exception):
    """Base class for every failure this package raises on purpose."""


class InvalidRequest(FilmNightError, ValueError):
    """Malformed, missing or contradictory input. Not retryable as-is."""


class NotFound(FilmNightError, LookupError):
    """A referenced session or movie does not exist (or was just deleted)."""


class Conflict(FilmNightError):
    """A uniqueness rule was violated, e.g. a duplicate title in a session."""


class EnrichmentError(FilmNightError):
    """A metadata source was unreachable, slow or returned garbage."""


class StorageError(FilmNightError):
    """The database failed underneath an operation; the transaction was rolled back."""
