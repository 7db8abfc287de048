"""Application configuration using pydantic-settings.

All ledger-specific constants (endpoint, currency, operation vocabulary and the
fee-burn address) live here so the construction pipeline hard-codes none of them.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mochimo_tx.rosetta.types import Currency, NetworkIdentifier


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Ledger node
    # ======================
    ledger_api_url: str = Field(
        default="http://ip.leonapp.it:8081", description="Construction API base URL"
    )
    ledger_blockchain: str = Field(default="mochimo", description="Network identifier blockchain")
    ledger_network: str = Field(default="mainnet", description="Network identifier network")
    request_timeout: Optional[float] = Field(
        default=None, description="Per-request transport timeout in seconds (None = no timeout)"
    )
    health_timeout: float = Field(default=4.0, description="Health probe timeout in seconds")

    # ======================
    # Currency / operations
    # ======================
    currency_symbol: str = Field(default="MCM", description="Currency symbol sent in operations")
    currency_decimals: int = Field(default=0, description="Currency decimals sent in operations")
    display_decimals: int = Field(default=9, description="Decimals used when displaying amounts")
    operation_type: str = Field(default="TRANSFER", description="Operation type for every leg")
    operation_status: str = Field(default="SUCCESS", description="Operation status for every leg")
    signature_type: str = Field(default="wotsp", description="Signature scheme / curve tag")

    # Empty address burns the fee to the network.
    fee_address: str = Field(default="", description="Account address of the fee operation")
    default_fee: int = Field(
        default=500, description="Fallback miner fee when neither caller nor node supplies one"
    )

    # ======================
    # Environment
    # ======================
    debug: bool = Field(default=False, description="Enable debug logging")

    @property
    def network_identifier(self) -> NetworkIdentifier:
        """Network identifier sent with every request."""
        return NetworkIdentifier(blockchain=self.ledger_blockchain, network=self.ledger_network)

    @property
    def currency(self) -> Currency:
        return Currency(symbol=self.currency_symbol, decimals=self.currency_decimals)

    def get_safe_dict(self) -> dict:
        """Return settings dict suitable for printing."""
        return {
            "ledger": {
                "api_url": self.ledger_api_url,
                "blockchain": self.ledger_blockchain,
                "network": self.ledger_network,
                "request_timeout": self.request_timeout,
                "health_timeout": self.health_timeout,
            },
            "currency": {
                "symbol": self.currency_symbol,
                "decimals": self.currency_decimals,
                "display_decimals": self.display_decimals,
            },
            "operations": {
                "type": self.operation_type,
                "status": self.operation_status,
                "signature_type": self.signature_type,
                "fee_address": self.fee_address or "(empty)",
                "default_fee": self.default_fee,
            },
            "debug": self.debug,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
