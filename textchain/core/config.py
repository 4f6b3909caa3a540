"""Application configuration and settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_WALLET_SECRET = "textchain-dev-wallet-secret"


class Settings(BaseSettings):
    """Application settings."""

    # Service Configuration
    service_name: str = Field(default="textchain-gateway")
    service_version: str = Field(default="1.0.0")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    api_prefix: str = Field(default="/api/v1")

    # Settlement Backend (balances, transfers, swaps, vouchers, names)
    settlement_backend_url: str = Field(default="http://localhost:3000")
    settlement_timeout_seconds: float = Field(default=30.0)

    # Name Resolution
    name_service_timeout_seconds: float = Field(default=10.0)
    name_suffix: str = Field(default="ttcip.eth")

    # Cashout Service
    cashout_service_url: str = Field(default="http://localhost:8084")
    cashout_timeout_seconds: float = Field(default=30.0)

    # Fire-and-forget commands (SWAP, CASHOUT, BRIDGE, BUY)
    fire_and_forget_timeout_seconds: float = Field(default=5.0)

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(default=5)
    circuit_breaker_timeout_seconds: int = Field(default=60)

    # Persistence
    storage_backend: str = Field(default="supabase")
    supabase_url: Optional[str] = Field(default=None)
    supabase_key: Optional[str] = Field(default=None)

    # Wallet key encryption
    wallet_encryption_secret: str = Field(default=DEFAULT_WALLET_SECRET)

    # Reply rendering
    network_label: str = Field(default="Sepolia testnet")
    contacts_display_limit: int = Field(default=5)
    history_limit: int = Field(default=5)

    @field_validator(
        "settlement_timeout_seconds",
        "name_service_timeout_seconds",
        "cashout_timeout_seconds",
        "fire_and_forget_timeout_seconds",
    )
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("supabase", "memory", "none"):
            raise ValueError("storage_backend must be one of: supabase, memory, none")
        return v

    @property
    def persistence_configured(self) -> bool:
        """Whether repositories can be built from this configuration."""
        if self.storage_backend == "memory":
            return True
        if self.storage_backend == "supabase":
            return bool(self.supabase_url and self.supabase_key)
        return False

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
