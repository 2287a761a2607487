"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Server binding
    host: str = "0.0.0.0"
    port: int = 3000

    # Development client (Vite dev server), used for CORS and the info endpoint
    client_url: str = "http://localhost:5173"

    # Comma-separated list of allowed origins (empty uses client_url)
    allowed_origins: str = ""

    # Built client served as static files in production
    static_dir: str = "client/dist"

    # Environment
    environment: str = "development"
    debug: bool = True

    # WebSocket
    ws_path: str = "/"
    ws_max_total_connections: int = 1000  # Maximum concurrent connections
    ws_max_message_size: int = 64 * 1024  # 64 KB per inbound frame
    ws_outbound_queue_size: int = 256  # Pending frames per connection before dropping
    ws_accept_timeout: float = 5.0  # Seconds to complete the handshake

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_allowed_origins(self) -> list[str]:
        """Origins allowed by CORS, falling back to the dev client."""
        if self.allowed_origins:
            return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        if self.is_production:
            return []
        return [self.client_url]

    def validate_production_settings(self) -> list[str]:
        """
        Validate settings that must be changed before running in production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.is_production:
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if self.ws_max_total_connections < 1:
            errors.append("WS_MAX_TOTAL_CONNECTIONS must be at least 1")

        if self.ws_outbound_queue_size < 1:
            errors.append("WS_OUTBOUND_QUEUE_SIZE must be at least 1")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
