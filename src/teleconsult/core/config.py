"""
Configuration management for the Teleconsult service.

This module provides centralized configuration using Pydantic Settings
for environment-based configuration management.
"""

from typing import List, Optional

import os
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    backend: str = Field(default="memory", description="Storage backend (memory or mongo)")
    uri: str = Field(default="", description="MongoDB connection URI")
    db_name: str = Field(default="teleconsult", description="MongoDB database name")
    server_selection_timeout_ms: int = Field(default=15000, description="MongoDB server selection timeout")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate storage backend."""
        valid_backends = ["memory", "mongo"]
        if v.lower() not in valid_backends:
            raise ValueError(f"Database backend must be one of: {valid_backends}")
        return v.lower()

    @model_validator(mode="after")
    def validate_mongo_uri(self) -> "DatabaseSettings":
        """Validate MongoDB URI format when the mongo backend is selected."""
        if self.backend != "mongo":
            return self
        if not self.uri:
            raise ValueError("MongoDB URI is required. Please set DATABASE_URI environment variable.")
        if not self.uri.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MongoDB URI must start with 'mongodb://' or 'mongodb+srv://'")
        return self


class CORSSettings(BaseSettings):
    """CORS configuration settings."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )
    allowed_methods: List[str] = Field(
        default=["GET", "POST", "PATCH", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    allowed_headers: List[str] = Field(default=["*"], description="Allowed HTTP headers")
    allow_credentials: bool = Field(default=True, description="Allow credentials in CORS")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed origins from string or list."""
        if isinstance(v, str):
            if v.startswith("[") and v.endswith("]"):
                import json

                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v.strip()]
            return [o.strip() for o in v.split(",") if o.strip()]
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ["json", "text"]:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class AvailabilitySettings(BaseSettings):
    """Doctor availability registry settings."""

    model_config = SettingsConfigDict(env_prefix="AVAILABILITY_")

    default_max_load: int = Field(default=5, description="Max concurrent consultations for a doctor that did not set one")
    max_load_ceiling: int = Field(default=20, description="Highest max_load a doctor may configure")
    default_limit: int = Field(default=10, description="Default result size for available doctor queries")
    max_limit: int = Field(default=50, description="Upper bound for available doctor queries")
    cache_ttl_seconds: int = Field(default=30, description="Availability read cache TTL (cross-process staleness window)")
    stale_minutes: int = Field(default=10, description="Minutes without activity before an online doctor is considered stale")
    sweeper_enabled: bool = Field(default=False, description="Run the stale availability sweeper inside the API process")
    sweeper_interval_seconds: int = Field(default=300, description="Interval between stale availability sweeps")

    @model_validator(mode="after")
    def validate_bounds(self) -> "AvailabilitySettings":
        if not 1 <= self.default_max_load <= self.max_load_ceiling:
            raise ValueError("default_max_load must be between 1 and max_load_ceiling")
        if not 1 <= self.default_limit <= self.max_limit:
            raise ValueError("default_limit must be between 1 and max_limit")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must not be negative")
        return self


class MatchingSettings(BaseSettings):
    """Doctor matching score weights.

    Only the dominance order is contractual: a single specialty match must
    outweigh any load difference, and one unit of load must outweigh any
    recency bonus.
    """

    model_config = SettingsConfigDict(env_prefix="MATCHING_")

    base_score: int = Field(default=10, description="Score every available doctor starts with")
    specialty_bonus: int = Field(default=500, description="Bonus per matching specialty")
    load_penalty: int = Field(default=20, description="Penalty per active consultation")
    recency_tier_minutes: List[int] = Field(default=[5, 15, 60], description="Upper bounds (minutes since last seen) of recency tiers")
    recency_tier_bonus: List[int] = Field(default=[15, 10, 5], description="Bonus awarded for each recency tier")
    assignment_attempts: int = Field(default=3, description="Match-and-commit attempts before a request is queued")

    @model_validator(mode="after")
    def validate_tiers(self) -> "MatchingSettings":
        if len(self.recency_tier_minutes) != len(self.recency_tier_bonus):
            raise ValueError("recency_tier_minutes and recency_tier_bonus must have the same length")
        if self.recency_tier_minutes != sorted(self.recency_tier_minutes):
            raise ValueError("recency_tier_minutes must be ascending")
        if any(b < 0 for b in self.recency_tier_bonus):
            raise ValueError("recency bonuses must not be negative")
        if self.load_penalty <= max(self.recency_tier_bonus, default=0):
            raise ValueError("load_penalty must be greater than the largest recency bonus")
        if self.assignment_attempts < 1:
            raise ValueError("assignment_attempts must be at least 1")
        return self


class NotificationSettings(BaseSettings):
    """Assignment and status change notification settings."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    backend: str = Field(default="log", description="Notification backend (log or webhook)")
    webhook_url: str = Field(default="", description="Webhook receiving notification events")
    timeout_seconds: float = Field(default=5.0, description="Webhook request timeout")

    @model_validator(mode="after")
    def validate_backend(self) -> "NotificationSettings":
        if self.backend not in ("log", "webhook"):
            raise ValueError("Notification backend must be 'log' or 'webhook'")
        if self.backend == "webhook" and not self.webhook_url.startswith(("http://", "https://")):
            raise ValueError("NOTIFY_WEBHOOK_URL must be an http(s) URL when the webhook backend is used")
        return self


class IdentitySettings(BaseSettings):
    """Caller identity header settings."""

    model_config = SettingsConfigDict(env_prefix="IDENTITY_")

    require_headers: bool = Field(default=True, description="Reject non-public requests without X-User-ID / X-User-Role")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="Teleconsult", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    app_env: str = Field(default="development", description="Application environment")
    debug: bool = Field(default=False, description="Debug mode")
    port: int = Field(default=8000, description="Application port")
    host: str = Field(default="0.0.0.0", description="Application host")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    availability: AvailabilitySettings = Field(default_factory=AvailabilitySettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    identity: IdentitySettings = Field(default_factory=IdentitySettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate application environment."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"App environment must be one of: {valid_envs}")
        return v.lower()

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @model_validator(mode="after")
    def validate_matching_dominance(self) -> "Settings":
        """A specialty match must outweigh the widest possible load gap."""
        widest_load_gap = self.matching.load_penalty * self.availability.max_load_ceiling
        if self.matching.specialty_bonus <= widest_load_gap:
            raise ValueError(
                f"MATCHING_SPECIALTY_BONUS ({self.matching.specialty_bonus}) must exceed "
                f"load_penalty * max_load_ceiling ({widest_load_gap})"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        return self.app_env == "testing"


# Global settings instance (loaded after attempting to read .env)
_settings: Optional[Settings] = None


def _load_env_file_if_available() -> None:
    """Best-effort load of .env by searching current and parent directories.

    This helps in environments where the working directory isn't the backend folder
    and pydantic's env_file doesn't get resolved as expected.
    """
    from dotenv import load_dotenv

    cwd = Path(os.getcwd()).resolve()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            # Do not override already-set environment variables
            load_dotenv(dotenv_path=str(candidate), override=False)
            break


def get_settings() -> Settings:
    """Get application settings instance (lazy-init with .env discovery)."""
    global _settings
    if _settings is None:
        _load_env_file_if_available()
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
