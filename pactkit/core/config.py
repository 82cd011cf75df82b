"""
Verification Configuration

Settings class using pydantic-settings for environment variable loading.
Build one Settings instance at process start and pass it to the Verifier,
the BrokerPublisher and the ContractLocator; nothing in the engine reads
the environment on its own.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_provider_version() -> str:
    """
    Build the fallback provider application version.

    Returns:
        str: "1.0." followed by the current UTC time as yyyyMMddHHmmss

    Example:
        >>> default_provider_version()
        '1.0.20261016221500'
    """
    return f"1.0.{datetime.now(timezone.utc):%Y%m%d%H%M%S}"


class Settings(BaseSettings):
    """
    Verification settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For example, branch_name can be set via the BRANCH_NAME env var.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Broker
    pact_broker_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the pact broker (publishing is skipped when unset)",
    )
    pact_broker_token: Optional[str] = Field(
        default=None,
        description="Bearer token for the broker",
    )
    pact_broker_username: Optional[str] = Field(
        default=None,
        description="Basic auth username for the broker",
    )
    pact_broker_password: Optional[str] = Field(
        default=None,
        description="Basic auth password for the broker",
    )
    publish_verification_results: bool = Field(
        default=False,
        description="Publish results to the broker after a verification run",
    )
    broker_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds applied to every broker call",
    )

    # Provider
    provider_version: str = Field(
        default_factory=default_provider_version,
        description="Provider application version reported to the broker",
    )
    branch_name: str = Field(
        default="main",
        description="Branch used to tag the provider version",
    )
    provider_request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for replayed requests and state calls",
    )

    # Contract files
    pact_dir: str = Field(
        default="pacts",
        description="Directory consumer tests write contracts into",
    )
    pact_search_dirs: str = Field(
        default="pacts,Consumer/pacts",
        description="Comma-separated sub-directories searched for contract files",
    )
    pact_search_depth: int = Field(
        default=10,
        ge=1,
        description="Number of parent directories walked when locating a contract",
    )
    pact_fallback_path: Optional[str] = Field(
        default=None,
        description="Contract path used when the upward search finds nothing",
    )

    @property
    def pact_search_dirs_list(self) -> list[str]:
        """Parse search directories from comma-separated string to list."""
        return [d.strip() for d in self.pact_search_dirs.split(",") if d.strip()]

    @property
    def publishing_enabled(self) -> bool:
        """True when results should be pushed to a configured broker."""
        return self.publish_verification_results and bool(self.pact_broker_base_url)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once per process.
    Intended for entry points (CLI, test fixtures); library code receives
    the instance as an argument.

    Returns:
        Settings: Settings instance
    """
    return Settings()
