from datetime import timedelta

import pytest

from movie_maze.config import load_settings, parse_duration


@pytest.mark.parametrize("raw, expected", [
    ("30d", timedelta(days=30)),
    ("12h", timedelta(hours=12)),
    ("15m", timedelta(minutes=15)),
    ("45s", timedelta(seconds=45)),
    ("3600", timedelta(hours=1)),
])
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration("forever")


def test_load_settings_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./other.db")
    monkeypatch.setenv("NODE_ENV", "production")
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("BASE_URL", "https://movies.example.com/")
    monkeypatch.setenv("API_PREFIX", "/api/")
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)

    settings = load_settings(env_file=str(tmp_path / "missing.env"))

    assert settings.database_url == "sqlite:///./other.db"
    assert settings.is_production
    assert settings.base_url == "https://movies.example.com"
    assert settings.api_prefix == "/api"
    assert settings.rate_limit_enabled is True


def test_rate_limits_off_by_default_in_development(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)
    assert load_settings(env_file=str(tmp_path / "missing.env")).rate_limit_enabled is False
