# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. Components
receive a Settings instance explicitly; nothing reads the environment
behind the caller's back.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_SERVICES = ("voyage", "mongodb", "cdp")


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === REASONING ===
    llm_provider: Literal["openai", "anthropic"] = "openai"
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # === EMBEDDINGS ===
    embedding_provider: Literal["voyage", "openai"] = "voyage"
    embedding_model: str = "voyage-3.5"
    embedding_dimensions: int = 1024
    voyage_api_key: str = ""

    # === STORAGE ===
    store_backend: Literal["memory", "sqlite"] = "memory"
    store_path: Path = Path("~/.paygent/paygent.db")

    # === PAYWALL ===
    paywall_signing_secret: str = ""
    paywall_issuer: str = "paygent"
    paywall_recipient: str = "0x742d35Cc6634C0532925a3b844Bc9e7595f12AB3"
    price_voyage_usdc: float = 0.50
    price_mongodb_usdc: float = 0.50
    price_cdp_usdc: float = 0.50
    entitlement_ttl_hours: float = 24.0
    payment_currency: str = "USDC"

    # === PAYMENTS ===
    payment_mode: Literal["auto", "real", "simulated"] = "auto"
    cdp_api_key_id: str = ""
    cdp_api_key_secret: str = ""
    cdp_wallet_secret: str = ""
    cdp_account_name: str = "paygent"
    network_id: str = "base"
    explorer_tx_url: str = "https://basescan.org/tx/"
    min_payment_balance: float = 0.50
    min_gas_balance: float = 0.00001
    simulated_payment_delay_s: float = 2.0

    # === ORCHESTRATION ===
    retrieve_top_k: int = 5
    artifact_preview_chars: int = 500
    verify_delay_s: float = 1.0
    verify_timeout_s: float = 60.0
    demo_mode: bool = False
    demo_services: str = "voyage,mongodb"
    stream_poll_interval_s: float = 0.1
    max_finished_runs: int = 100

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # === API ===
    api_host: str = "127.0.0.1"
    api_port: int = 3001

    # --- Validators ---

    @field_validator("retrieve_top_k", "artifact_preview_chars")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("price_voyage_usdc", "price_mongodb_usdc", "price_cdp_usdc")
    @classmethod
    def validate_price(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("service price must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.payment_mode == "real" and not self.has_cdp_credentials:
            errors.append(
                "PAYMENT_MODE=real requires CDP_API_KEY_ID, CDP_API_KEY_SECRET "
                "and CDP_WALLET_SECRET"
            )

        unknown = [s for s in self.demo_services_list if s not in KNOWN_SERVICES]
        if unknown:
            errors.append(f"DEMO_SERVICES contains unknown services: {', '.join(unknown)}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def has_cdp_credentials(self) -> bool:
        return bool(
            self.cdp_api_key_id and self.cdp_api_key_secret and self.cdp_wallet_secret
        )

    @property
    def demo_services_list(self) -> list[str]:
        """Parse comma-separated demo services."""
        return [s.strip() for s in self.demo_services.split(",") if s.strip()]

    @property
    def service_prices(self) -> dict[str, float]:
        return {
            "voyage": self.price_voyage_usdc,
            "mongodb": self.price_mongodb_usdc,
            "cdp": self.price_cdp_usdc,
        }


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or the CLI).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
