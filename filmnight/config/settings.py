from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    sqlite_db_path: str
    tmdb_api_key: str
    tmdb_base_url: str
    openai_api_key: str
    openai_model: str
    enrichment_enabled: bool
    enrichment_timeout_seconds: float
    log_level: str
    base_url: str


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip(),
        sqlite_db_path=os.getenv("SQLITE_DB_PATH", "data/filmnight.db"),
        tmdb_api_key=os.getenv("TMDB_API_KEY", "").strip(),
        tmdb_base_url=os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3").rstrip("/"),
        openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-mini"),
        enrichment_enabled=_get_bool_env("ENRICHMENT_ENABLED", True),
        enrichment_timeout_seconds=float(os.getenv("ENRICHMENT_TIMEOUT_SECONDS", "10")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        base_url=os.getenv("BASE_URL", "http://localhost:8501"),
    )


def validate_settings(settings: Settings) -> list[str]:
    errors: list[str] = []
    if settings.enrichment_timeout_seconds <= 0:
        errors.append("ENRICHMENT_TIMEOUT_SECONDS must be > 0")
    if not settings.base_url:
        errors.append("BASE_URL is required")
    elif "://" not in settings.base_url:
        errors.append("BASE_URL must include scheme, e.g. http://")
    if not settings.tmdb_base_url.startswith(("http://", "https://")):
        errors.append("TMDB_BASE_URL must start with http:// or https://")
    if settings.log_level not in logging.getLevelNamesMapping():
        errors.append(f"LOG_LEVEL {settings.log_level!r} is not a logging level")
    if settings.database_url and not settings.database_url.startswith(
        ("postgres://", "postgresql://")
    ):
        errors.append("DATABASE_URL must start with postgres:// or postgresql://")
    return errors


def missing_optional_keys(settings: Settings) -> list[str]:
    """Keys whose absence only degrades movie enrichment."""
    warnings: list[str] = []
    if not settings.enrichment_enabled:
        return warnings
    if not settings.tmdb_api_key:
        warnings.append("TMDB_API_KEY is not set; movie details will not be looked up")
    if not settings.openai_api_key:
        warnings.append("OPENAI_API_KEY is not set; titles from links are parsed heuristically")
    return warnings


def ensure_runtime_dirs(settings: Settings) -> None:
    if not settings.database_url:
        Path(settings.sqlite_db_path).parent.mkdir(parents=True, exist_ok=True)
