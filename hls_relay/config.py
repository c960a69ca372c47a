"""Configuration management for the relay server."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HLS_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Upstream Configuration
    upstream_origin: str = "https://www.youtube.com"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"

    # Cache Configuration (seconds per tier)
    master_ttl_seconds: int = 10
    variant_ttl_seconds: int = 5
    segment_ttl_seconds: int = 30
    cache_max_entries: int = 2048
    cache_max_bytes: int = 256 * 1024 * 1024  # 256 MB of stored bodies
    cache_sweep_interval_seconds: float = 15.0

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    # HTTP Client Configuration
    http_timeout_seconds: float = 30.0
    http_max_connections: int = 100
    http_max_keepalive_connections: int = 20

    @property
    def upstream_headers(self) -> dict[str, str]:
        """Fixed browser identity sent with every upstream request."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "*/*",
            "Accept-Language": self.accept_language,
        }


# Global settings instance
settings = Settings()
