"""Application configuration using pydantic-settings.

Every value has a working default, so the engine runs with no
environment at all. Remote exchange info may override spreads, mirror
lists and streaming parameters at runtime.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Info server
    # ======================
    app_id: str = Field(default="edge", description="Application id used for exchange info")
    info_servers: str = Field(
        default="https://info1.edge.app,https://info2.edge.app",
        description="Comma-separated exchange info server URLs",
    )
    exchange_info_ttl_seconds: float = Field(default=60.0, description="Exchange info refresh interval")

    # ======================
    # Networking / caching
    # ======================
    fetch_timeout_seconds: float = Field(default=5.0, description="Per-mirror request timeout")
    fee_cache_ttl_seconds: float = Field(default=30.0, description="Custom fee cache entry lifetime")
    quote_expiration_seconds: int = Field(default=60, description="Quote validity period")

    # ======================
    # THORChain-style providers
    # ======================
    affiliate_fee_basis: str = Field(default="50", description="Affiliate fee in basis points")
    thorname: str = Field(default="ej", description="Affiliate THORName")
    ninerealms_client_id: str = Field(default="", description="x-client-id header for Nine Realms nodes")
    thornode_servers: str = Field(
        default="https://thornode.ninerealms.com/thorchain",
        description="Comma-separated THORNode base URLs",
    )
    thorchain_midgard_servers: str = Field(
        default="https://midgard.thorchain.info",
        description="Comma-separated THORChain Midgard URLs",
    )
    mayanode_servers: str = Field(
        default="https://mayanode.mayachain.info/mayachain",
        description="Comma-separated MAYANode base URLs",
    )
    maya_midgard_servers: str = Field(
        default="https://midgard.mayachain.info",
        description="Comma-separated Maya Midgard URLs",
    )
    streaming_interval: int = Field(default=10, description="Blocks between streaming sub-swaps")
    streaming_quantity: int = Field(default=10, description="Number of streaming sub-swaps")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def info_server_list(self) -> list[str]:
        return _split(self.info_servers)

    @property
    def thornode_server_list(self) -> list[str]:
        return _split(self.thornode_servers)

    @property
    def thorchain_midgard_server_list(self) -> list[str]:
        return _split(self.thorchain_midgard_servers)

    @property
    def mayanode_server_list(self) -> list[str]:
        return _split(self.mayanode_servers)

    @property
    def maya_midgard_server_list(self) -> list[str]:
        return _split(self.maya_midgard_servers)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "app_id": self.app_id,
            "info_servers": self.info_server_list,
            "fetch_timeout_seconds": self.fetch_timeout_seconds,
            "exchange_info_ttl_seconds": self.exchange_info_ttl_seconds,
            "fee_cache_ttl_seconds": self.fee_cache_ttl_seconds,
            "quote_expiration_seconds": self.quote_expiration_seconds,
            "thorchain": {
                "thornode": self.thornode_server_list,
                "midgard": self.thorchain_midgard_server_list,
                "client_id": "***" if self.ninerealms_client_id else "(not set)",
            },
            "mayaprotocol": {
                "mayanode": self.mayanode_server_list,
                "midgard": self.maya_midgard_server_list,
            },
            "affiliate": {
                "thorname": self.thorname,
                "fee_basis": self.affiliate_fee_basis,
            },
            "streaming": {
                "interval": self.streaming_interval,
                "quantity": self.streaming_quantity,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[int] = None) -> None:
    """Configure root logging. Defaults to DEBUG when settings.debug is set."""
    if level is None:
        level = logging.DEBUG if get_settings().debug else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
