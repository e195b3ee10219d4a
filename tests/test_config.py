"""Tests for settings helpers."""

import pytest

from expiry_tracker.config import ClientSettings, parse_store_backend


def test_parse_store_backend_defaults_to_memory() -> None:
    assert parse_store_backend(None) == "memory"
    assert parse_store_backend("  ") == "memory"
    assert parse_store_backend(" Supabase ") == "supabase"


def test_parse_store_backend_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_store_backend("redis")


def test_client_settings_read_prefixed_env(monkeypatch) -> None:
    monkeypatch.setenv("CLIENT_SERVER_URL", "https://handoff.test")
    monkeypatch.setenv("CLIENT_POLL_MAX_ATTEMPTS", "5")

    settings = ClientSettings()

    assert settings.server_url == "https://handoff.test"
    assert settings.poll_max_attempts == 5
    assert settings.poll_interval_seconds == 1.0
    assert settings.batch_size_limit == 10
