"""Settings and configuration management for Simple Docker Manager."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from SDM_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SDM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    host: str = Field(
        default="0.0.0.0",
        description="Server host to bind to",
    )

    port: int = Field(
        default=3000,
        description="Server port to bind to",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log format (json or text)",
    )

    # Docker configuration
    docker_socket: str | None = Field(
        default=None,
        description="Docker socket path or URL (defaults to Docker's standard detection)",
    )

    # Dashboard polling hints
    metrics_interval_seconds: int = Field(
        default=5,
        gt=0,
        description="Interval in seconds between dashboard metrics refreshes",
    )

    metrics_history_limit: int = Field(
        default=20,
        gt=0,
        description="Number of metrics points the dashboard keeps per chart",
    )

    max_chart_containers: int = Field(
        default=5,
        gt=0,
        description="Maximum number of containers drawn in dashboard charts",
    )

    default_log_tail: int = Field(
        default=100,
        gt=0,
        description="Number of log lines returned when no tail is requested",
    )

    shutdown_timeout_seconds: int = Field(
        default=30,
        description="Grace period in seconds for in-flight requests during shutdown",
    )

    # Authentication configuration
    auth_enabled: bool = Field(
        default=True,
        description="Require a signed-in session for everything but health and login",
    )

    auth_username: str = Field(
        default="admin",
        description="Username of the single admin account",
    )

    auth_password: str | None = Field(
        default=None,
        description="Plaintext admin password (hashed at startup, never stored)",
    )

    auth_password_hash: str | None = Field(
        default=None,
        description="Pre-computed Argon2 hash of the admin password",
    )

    password_file: str | None = Field(
        default=None,
        description="Location of the generated password file",
    )

    session_timeout_seconds: int = Field(
        default=3600,
        gt=0,
        description="Idle time in seconds after which a session expires",
    )

    session_sweep_interval_seconds: int = Field(
        default=0,
        ge=0,
        description="Interval in seconds for the expired-session sweep (0 disables it)",
    )

    @property
    def bind_address(self) -> str:
        """Full host:port address to bind the HTTP server to."""
        return f"{self.host}:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
