"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (distance cache)
    database_url: str = "postgresql://localhost:5432/tms_dispatch"

    # Google Maps (geocoding + distance matrix)
    google_maps_api_key: str = ""
    google_maps_base_url: str = "https://maps.googleapis.com/maps/api"
    http_timeout_seconds: float = 30.0

    # Batch lookups against the maps API
    batch_chunk_size: int = 5
    batch_delay_seconds: float = 0.2

    # Route cache
    route_cache_ttl_days: int | None = None  # None = entries never expire
    route_cache_create_tables: bool = False

    # Ollama (vision extraction)
    ollama_base_url: str = "http://localhost:11434"
    ollama_vision_model: str = "llava"
    ollama_timeout: int = 120  # seconds

    # Application
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000


settings = Settings()
