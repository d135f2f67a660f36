"""
Engine configuration using Pydantic Settings.
"""

from functools import lru_cache
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bastion.core.exceptions import ConfigurationError


class DatabaseSettings(BaseSettings):
    """Permission store configuration."""

    model_config = SettingsConfigDict(env_prefix="BASTION_DB_")

    url: str = Field(
        default="sqlite+aiosqlite:///./bastion.db",
        description="SQLAlchemy async connection URL",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")


class CacheSettings(BaseSettings):
    """Verdict cache configuration."""

    model_config = SettingsConfigDict(env_prefix="BASTION_CACHE_")

    backend: str = Field(
        default="memory",
        description="Cache backend: memory, redis, null",
    )
    ttl: int | None = Field(
        default=None,
        ge=1,
        description="Entry lifetime in seconds (None = backend default)",
    )
    prefix: str = Field(default="bastion", description="Key prefix for all entries")
    redis_url: str = Field(default="redis://localhost:6379/0")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = {"memory", "redis", "null"}
        if v not in allowed:
            raise ValueError(f"backend must be one of {sorted(allowed)}")
        return v


class BastionSettings(BaseSettings):
    """Top-level engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="BASTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    guard: str = Field(
        default="web",
        description="Default guard namespace for abilities and roles",
    )
    ownership_attribute: str = Field(
        default="user_id",
        description="Resource attribute compared with the authority key for owned abilities",
    )
    gate_slot: str = Field(
        default="after",
        description="When the host gate consults the engine: before, after",
    )

    # Entity identity mapping (type tag or class name -> key attribute).
    # Only one of the two may be configured.
    key_map: dict[str, str] = Field(default_factory=dict)
    enforced_key_map: dict[str, str] = Field(default_factory=dict)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @field_validator("gate_slot")
    @classmethod
    def validate_gate_slot(cls, v: str) -> str:
        if v not in ("before", "after"):
            raise ValueError(f"{v} is an invalid gate slot")
        return v

    @model_validator(mode="after")
    def check_key_maps(self) -> "BastionSettings":
        if self.key_map and self.enforced_key_map:
            raise ConfigurationError(
                "key_map and enforced_key_map are mutually exclusive; "
                "configure only one of them"
            )
        return self


@lru_cache
def get_settings() -> BastionSettings:
    """Get cached settings instance."""
    return BastionSettings()
