"""
Configuration settings for the domain indexer.

Uses Pydantic Settings to load environment variables for the chain RPC endpoint,
contract addresses, the record store, the trigger endpoint and sync tuning.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Event source
    rpc_url: str = Field("http://localhost:8545", alias="MAINNET_RPC_URL")
    registrar_addr: str = Field("", alias="REGISTRAR_ADDR")
    resolver_addr: str = Field("", alias="RESOLVER_ADDR")
    token_addr: Optional[str] = Field(None, alias="TOKEN_ADDR")
    deployment_block: int = Field(0, alias="DEPLOYMENT_BLOCK", ge=0)

    # Record store
    store_backend: Literal["postgres", "memory"] = Field("postgres", alias="STORE_BACKEND")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("domain_indexer", alias="DB_NAME")

    # Sync tuning
    backfill_window_size: int = Field(1_000, alias="BACKFILL_WINDOW_SIZE", gt=0)
    readiness_attempts: int = Field(30, alias="READINESS_ATTEMPTS", gt=0)
    readiness_delay_seconds: float = Field(2.0, alias="READINESS_DELAY_SECONDS", ge=0)
    live_poll_interval_seconds: float = Field(4.0, alias="LIVE_POLL_INTERVAL_SECONDS", gt=0)

    # Trigger endpoint
    cron_secret: str = Field("", alias="CRON_SECRET")
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(3001, alias="API_PORT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def effective_token_addr(self) -> str:
        """The ERC-721 contract emitting Transfer events; the registrar unless overridden."""
        return self.token_addr or self.registrar_addr


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
