"""Runtime configuration for the pepyatka API, read from the environment."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings. Every field can be set from `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="pepyatka", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=True, description="Expose docs and debug details")

    # API server
    api_host: str = Field(default="0.0.0.0", description="Bind address")
    api_port: int = Field(default=3000, description="Bind port")
    api_reload: bool = Field(default=True, description="Auto-reload on change")

    # Authentication
    auth_secret_key: str = Field(
        default="dev-pepyatka-jwt-secret-change-me-32chars",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=60 * 24 * 30, description="Session token lifetime (minutes)"
    )
    auth_min_password_length: int = Field(
        default=6, description="Minimum accepted password length"
    )

    # Redis (realtime events, rate limiting)
    redis_enabled: bool = Field(default=True, description="Connect to Redis on start")
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    redis_max_connections: int = Field(default=10, description="Pool size")
    redis_socket_timeout: float = Field(default=5.0, description="Socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Connect timeout"
    )
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval (seconds)"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Contact points"
    )
    cassandra_port: int = Field(default=9042, description="Native protocol port")
    cassandra_keyspace: str = Field(default="pepyatka", description="Keyspace")
    cassandra_username: str | None = Field(default=None, description="Username")
    cassandra_password: str | None = Field(default=None, description="Password")
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=10.0, description="Request timeout"
    )
    cassandra_replication_factor: int = Field(
        default=1, description="SimpleStrategy replication factor"
    )

    # Feeds
    timeline_page_size: int = Field(default=30, description="Default page size")
    timeline_max_page_size: int = Field(default=100, description="Largest page size")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Add filename/lineno/func to records"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Rotate after this many bytes"
    )
    log_file_backup_count: int = Field(default=5, description="Rotated files kept")
    log_requests: bool = Field(default=True, description="Log request start/finish")
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths skipped by request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="Allowed origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="Preflight cache (seconds)")

    @property
    def is_development(self) -> bool:
        """True in the development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """True in the production environment."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """True when running under tests."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
