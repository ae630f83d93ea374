"""Application configuration and settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from migration_monitor.core.constants import (
    DEFAULT_FAILED_DOC_SEPARATOR,
    DEFAULT_LEASE_TABLE,
    DEFAULT_MIGRATION_TABLE,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "Migration Monitor"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: str = "INFO"

    # Migration metadata store (Supabase)
    supabase_url: str | None = None
    supabase_key: str | None = None  # Service role key (not anon key!)
    migration_table: str = DEFAULT_MIGRATION_TABLE
    lease_table: str = DEFAULT_LEASE_TABLE
    discovery_page_size: int = 100

    # Dead-letter object store
    dead_letter_account_name: str | None = None
    failed_doc_separator: str = DEFAULT_FAILED_DOC_SEPARATOR

    # HashiCorp Vault
    vault_url: str = "http://127.0.0.1:8200"
    vault_token: str | None = None  # Static token; AppRole is used when unset
    vault_role_id: str | None = None
    vault_secret_id: str | None = None
    vault_namespace: str | None = None
    vault_mount_point: str = "secret"
    vault_path_prefix: str = "migration-monitor"
    vault_init_attempts: int = 10
    vault_init_retry_delay_seconds: float = 1.0

    # Record stores (MongoDB API)
    record_store_max_pool_size: int = 10
    record_store_timeout_ms: int = 30000

    # Monitor loop
    monitor_interval_seconds: float = 10.0  # Sleep between rounds
    conflict_retry_budget_seconds: float | None = None  # None = retry conflicts forever
    health_check_port: int = 8080  # 0 disables the health server


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
