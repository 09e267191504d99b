"""Application configuration using pydantic-settings.

All addresses are hex strings; amounts are integers in the smallest unit of
the stable asset.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/stablevault.db",
        description="Event store connection URL",
    )
    persist_events: bool = Field(
        default=True, description="Write emitted ledger events to the event store"
    )
    replay_events_on_startup: bool = Field(
        default=True, description="Rebuild ledger state from the event store at startup"
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(
        default=True, description="Use the in-process simulated router and tokens"
    )

    # ======================
    # Identities
    # ======================
    vault_address: str = Field(
        default="0x5afe000000000000000000000000000000000001",
        description="Custody address of the ledger",
    )
    facade_address: str = Field(
        default="0x5afe000000000000000000000000000000000002",
        description="Custody address of the router facade",
    )
    admin_address: str = Field(
        default="0xad00000000000000000000000000000000000001",
        description="Initial admin (also granted operator)",
    )
    operator_address: str = Field(
        default="", description="Additional operator granted at startup (optional)"
    )

    # ======================
    # Assets
    # ======================
    stable_asset: str = Field(
        default="0x55d398326f99059ff775485246999027b3197955",
        description="Stable asset every balance is denominated in",
    )
    base_asset: str = Field(
        default="0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c",
        description="Router base pairing asset (wrapped native currency)",
    )

    # ======================
    # Ledger limits
    # ======================
    default_cap: int = Field(
        default=1_000_000, description="Initial ceiling on aggregate deposits"
    )
    swap_deadline_seconds: int = Field(
        default=300, description="Execution deadline for deposit swaps"
    )
    guard_timeout_seconds: float = Field(
        default=30.0, description="Max wait for the ledger guard (0 = wait forever)"
    )

    # ======================
    # Dry run
    # ======================
    dry_run_stable_liquidity: int = Field(
        default=10**30, description="Stable asset minted to the simulated router"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "persist_events": self.persist_events,
            "vault_address": self.vault_address,
            "facade_address": self.facade_address,
            "assets": {
                "stable": self.stable_asset,
                "base": self.base_asset,
            },
            "limits": {
                "default_cap": self.default_cap,
                "swap_deadline_seconds": self.swap_deadline_seconds,
                "guard_timeout_seconds": self.guard_timeout_seconds,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
