"""Configuration and environment loading for Device Tools."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Exa web search (empty means the search tool fails closed)
    exa_api_key: str = ""
    exa_api_url: str = "https://api.exa.ai/search"

    # Anthropic, used to write web page summaries
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"
    claude_max_tokens: int = 1024

    # Open-Meteo
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"

    # Outbound HTTP timeout in seconds
    http_timeout: float = 30.0

    # Apple Health export.xml backing the health tool
    health_export_path: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
