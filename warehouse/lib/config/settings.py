"""Settings models and configuration loading for the warehouse monitor."""

from functools import cached_property, lru_cache
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from warehouse.lib.config.enums import DedupStrategy, StoreBackend

THRESHOLDS_PATH = "/warehouse/thresholds"
READINGS_PATH = "/warehouse/data"
NOTIFICATIONS_PATH = "/warehouse/notifications/general"


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v == "1"
    return bool(v)


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]


def _normalize_path(path: str) -> str:
    """Return a path with a single leading slash and no trailing slash."""
    return "/" + path.strip("/")


class StoreSettings(BaseModel):
    """Realtime store connection settings."""

    model_config = ConfigDict(frozen=True)

    backend: StoreBackend = StoreBackend.REDIS
    redis_url: str = "redis://localhost:6379/0"
    prefix: str = "rtdb:"
    indexed_fields: tuple[str, ...] = ("dataTimestamp",)


class PathSettings(BaseModel):
    """Store paths of the monitored nodes."""

    model_config = ConfigDict(frozen=True)

    thresholds: str = THRESHOLDS_PATH
    readings: str = READINGS_PATH
    notifications: str = NOTIFICATIONS_PATH


class MonitorSettings(BaseModel):
    """Breach monitor behavior settings."""

    model_config = ConfigDict(frozen=True)

    dedup_strategy: DedupStrategy = DedupStrategy.DURABLE
    dedup_query_limit: int = 50
    dedup_cache_size: int = 1024
    staleness_filter: bool = True
    startup_max_retries: int = 3
    startup_initial_backoff_sec: float = 1.0


class ServerSettings(BaseModel):
    """HTTP server settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 3000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Store
    store_backend: StoreBackend = StoreBackend.REDIS
    redis_url: str = "redis://localhost:6379/0"
    store_prefix: str = "rtdb:"
    # Comma-separated child fields indexed for queries
    store_indexed_fields: str = "dataTimestamp"

    # Paths
    thresholds_path: str = THRESHOLDS_PATH
    readings_path: str = READINGS_PATH
    notifications_path: str = NOTIFICATIONS_PATH

    # Monitor
    dedup_strategy: DedupStrategy = DedupStrategy.DURABLE
    dedup_query_limit: int = Field(default=50, ge=1)
    dedup_cache_size: int = Field(default=1024, ge=1)
    staleness_filter: _BoolFromStr = True
    startup_max_retries: int = Field(default=3, ge=1)
    startup_initial_backoff_sec: float = Field(default=1.0, ge=0)

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, gt=0, le=65535)
    log_level: str = "INFO"

    @cached_property
    def store(self) -> StoreSettings:
        """Get store settings as nested object."""
        return StoreSettings(
            backend=self.store_backend,
            redis_url=self.redis_url,
            prefix=self.store_prefix,
            indexed_fields=tuple(
                f.strip()
                for f in self.store_indexed_fields.split(",")
                if f.strip()
            ),
        )

    @cached_property
    def paths(self) -> PathSettings:
        """Get store paths as nested object."""
        return PathSettings(
            thresholds=_normalize_path(self.thresholds_path),
            readings=_normalize_path(self.readings_path),
            notifications=_normalize_path(self.notifications_path),
        )

    @cached_property
    def monitor(self) -> MonitorSettings:
        """Get monitor settings as nested object."""
        return MonitorSettings(
            dedup_strategy=self.dedup_strategy,
            dedup_query_limit=self.dedup_query_limit,
            dedup_cache_size=self.dedup_cache_size,
            staleness_filter=self.staleness_filter,
            startup_max_retries=self.startup_max_retries,
            startup_initial_backoff_sec=self.startup_initial_backoff_sec,
        )

    @cached_property
    def server(self) -> ServerSettings:
        """Get server settings."""
        return ServerSettings(host=self.host, port=self.port)

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        paths = {
            "THRESHOLDS_PATH": self.thresholds_path,
            "READINGS_PATH": self.readings_path,
            "NOTIFICATIONS_PATH": self.notifications_path,
        }
        for name, path in paths.items():
            if not path.strip("/"):
                errors.append(f"{name} must not be empty")

        normalized = [_normalize_path(p) for p in paths.values()]
        if len(set(normalized)) != len(normalized):
            errors.append("Store paths must be distinct")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from warehouse.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
