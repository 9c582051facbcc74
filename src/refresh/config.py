"""Refresh coordinator configuration.

All settings can be overridden via ``REFRESH_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RefreshConfig(BaseSettings):
    """Configuration for staleness detection and single-flight refresh."""

    model_config = SettingsConfigDict(
        env_prefix="REFRESH_",
        case_sensitive=False,
        extra="ignore",
    )

    staleness_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Feed is stale when the newest item was ingested longer ago than this",
    )
    wait_timeout_seconds: float = Field(
        default=10.0,
        ge=0,
        description="How long a reader waits for another instance's refresh",
    )
    connector_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-connector fetch bound; slower connectors contribute nothing",
    )
    lock_ttl_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Lease expiry so a crashed holder cannot block refreshes",
    )
    lock_key: str = Field(default="creator_feed:refresh:lease")
