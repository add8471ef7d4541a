from __future__ import annotations

from pathlib import Path

import pytest

from filmnight.config.settings import (
    ensure_runtime_dirs,
    load_settings,
    missing_optional_keys,
    validate_settings,
)


def test_load_settings_defaults(monkeypatch):
    for name in (
        "DATABASE_URL",
        "SQLITE_DB_PATH",
        "TMDB_API_KEY",
        "TMDB_BASE_URL",
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "ENRICHMENT_ENABLED",
        "ENRICHMENT_TIMEOUT_SECONDS",
        "LOG_LEVEL",
        "BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.sqlite_db_path == "data/filmnight.db"
    assert settings.tmdb_base_url == "https://api.themoviedb.org/3"
    assert settings.enrichment_enabled is True
    assert settings.enrichment_timeout_seconds == 10.0
    assert settings.log_level == "INFO"
    assert validate_settings(settings) == []


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("TMDB_BASE_URL", "https://tmdb.example/3/")
    monkeypatch.setenv("ENRICHMENT_ENABLED", "no")
    monkeypatch.setenv("ENRICHMENT_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("TMDB_API_KEY", "  key  ")
    settings = load_settings()
    assert settings.tmdb_base_url == "https://tmdb.example/3"
    assert settings.enrichment_enabled is False
    assert settings.enrichment_timeout_seconds == 2.5
    assert settings.log_level == "DEBUG"
    assert settings.tmdb_api_key == "key"


@pytest.mark.parametrize(
    ("overrides", "fragment"),
    [
        ({"enrichment_timeout_seconds": 0.0}, "ENRICHMENT_TIMEOUT_SECONDS"),
        ({"base_url": ""}, "BASE_URL is required"),
        ({"base_url": "localhost:8501"}, "scheme"),
        ({"tmdb_base_url": "api.themoviedb.org"}, "TMDB_BASE_URL"),
        ({"log_level": "LOUD"}, "LOG_LEVEL"),
        ({"database_url": "mysql://db"}, "DATABASE_URL"),
    ],
)
def test_validate_settings_reports_each_problem(make_settings, overrides, fragment):
    errors = validate_settings(make_settings(**overrides))
    assert len(errors) == 1
    assert fragment in errors[0]


def test_postgres_url_is_accepted(make_settings):
    assert validate_settings(make_settings(database_url="postgresql://u@h/db")) == []


def test_missing_optional_keys(make_settings):
    assert missing_optional_keys(make_settings()) == []
    warnings = missing_optional_keys(make_settings(tmdb_api_key="", openai_api_key=""))
    assert len(warnings) == 2
    assert any("TMDB_API_KEY" in w for w in warnings)
    assert missing_optional_keys(
        make_settings(tmdb_api_key="", enrichment_enabled=False)
    ) == []


def test_ensure_runtime_dirs_creates_sqlite_parent(make_settings, tmp_path: Path):
    db_path = tmp_path / "deep" / "dir" / "filmnight.db"
    ensure_runtime_dirs(make_settings(sqlite_db_path=str(db_path)))
    assert db_path.parent.is_dir()
