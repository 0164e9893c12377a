"""Tests for application configuration."""

from dispatch.config import Settings


def test_settings_defaults() -> None:
    """Test that settings have expected default values."""
    settings = Settings(_env_file=None)
    assert settings.api_port == 8000
    assert settings.debug is False
    assert "postgresql" in settings.database_url


def test_batch_defaults_match_rate_limit_policy() -> None:
    """Test that lookups default to chunks of 5 with a 200ms pause."""
    settings = Settings(_env_file=None)
    assert settings.batch_chunk_size == 5
    assert settings.batch_delay_seconds == 0.2


def test_route_cache_never_expires_by_default() -> None:
    """Test that no TTL is applied unless configured."""
    settings = Settings(_env_file=None)
    assert settings.route_cache_ttl_days is None
    assert settings.route_cache_create_tables is False


def test_settings_read_environment(monkeypatch) -> None:
    """Test that the maps key and TTL come from the environment."""
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "env-key")
    monkeypatch.setenv("ROUTE_CACHE_TTL_DAYS", "30")
    settings = Settings(_env_file=None)
    assert settings.google_maps_api_key == "env-key"
    assert settings.route_cache_ttl_days == 30
