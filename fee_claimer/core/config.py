"""
Configuration management using Pydantic Settings.
Every constant the claim pipeline consumes is supplied here, never hardwired.
"""

from decimal import Decimal
from typing import Optional, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_RPC_ENDPOINTS = [
    "https://solana-mainnet.g.alchemy.com/v2/demo",
    "https://api.mainnet-beta.solana.com",
    "https://rpc.ankr.com/solana",
    "https://solana-api.projectserum.com",
]


class Settings(BaseSettings):
    """Application settings with environment-based configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FEE_CLAIMER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Partner Fee Claimer"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # API
    api_v1_prefix: str = "/api/v1"
    host: str = "127.0.0.1"
    port: int = 8000

    # Solana RPC (order defines failover priority)
    rpc_endpoints: List[str] = Field(default_factory=lambda: list(DEFAULT_RPC_ENDPOINTS))
    rpc_timeout: float = 30.0  # seconds
    commitment: str = "confirmed"
    blockhash_commitment: str = "finalized"

    # Dynamic bonding curve program
    dbc_program_id: str = "dbcij3LWUppWqq96dh6gJWwBifmcGfLSB5D4DuSMaqN"
    pool_config_address: str = "28eYKBRnoVjVCHaJUeLKYzZyBJR3c5TG1UMGQccpSZgE"

    # Claim eligibility
    min_claim_usd: Decimal = Decimal("1")
    sol_price_usd: Decimal = Decimal("150")
    lamports_per_sol: int = 1_000_000_000
    max_claim_amount: int = 1_000_000_000_000

    # Retry / timing
    claim_max_retries: int = 3
    claim_retry_base_delay: float = 1.0  # seconds
    confirmation_timeout: float = 60.0  # seconds
    inter_claim_delay: float = 1.0  # seconds
    notification_ttl: float = 5.0  # seconds

    # Wallet
    wallet_private_key: Optional[str] = None  # base58 secret key
    wallet_keypair_path: Optional[str] = None  # solana CLI keypair JSON

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # json or console
    log_file: Optional[str] = None

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("rpc_endpoints")
    @classmethod
    def validate_rpc_endpoints(cls, v: List[str]) -> List[str]:
        endpoints = [url.strip() for url in v if url and url.strip()]
        if not endpoints:
            raise ValueError("At least one RPC endpoint is required")
        return endpoints

    @field_validator("claim_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("claim_max_retries must be at least 1")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# Global settings instance
settings = Settings()


class ClaimConfig:
    """Claim-specific values derived from settings."""

    @staticmethod
    def unit_value_conversion(config: Optional[Settings] = None) -> Decimal:
        """USD value of one lamport at the configured static SOL price."""
        config = config or settings
        return Decimal(config.sol_price_usd) / Decimal(config.lamports_per_sol)
