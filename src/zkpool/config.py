"""Runtime configuration read from the environment and an optional .env file."""

import logging
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

GWEI = 10**9


class Settings(BaseSettings):
    """All tunables, overridable with ZKPOOL_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="ZKPOOL_", env_file=".env", extra="ignore")

    # Node
    rpc_url: str = "http://localhost:8545"
    rpc_headers: Dict[str, str] = Field(default_factory=dict)
    proxy_url: Optional[str] = None
    chain_id: int = 1
    http_timeout: float = 30.0

    # Event cache
    cache_database_url: str = "sqlite:///zkpool_events.db"
    get_logs_batch_size: int = Field(default=10_000, gt=0)

    # Transactions
    receipt_poll_interval: float = Field(default=0.25, ge=0)
    receipt_timeout: Optional[float] = None
    default_priority_fee: int = 2 * GWEI

    # Relayer
    relayer_poll_interval: float = Field(default=3.0, ge=0)
    relayer_max_attempts: Optional[int] = Field(default=None, gt=0)
    relayer_gas_limit: int = 700_000
    relayer_priority_fee: int = 3 * GWEI
    max_relayer_service_fee: float = 0.5

    log_level: str = "INFO"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (for testing)."""
    global _settings
    _settings = None


def configure_logging(level: Optional[str] = None) -> None:
    """Install a basic console logging configuration."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
