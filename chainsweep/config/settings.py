"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from bip_utils import Bip39MnemonicValidator
from loguru import logger
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainsweep.models.enums import Network


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Custody
    master_mnemonic: SecretStr = Field(
        ..., description="BIP-39 mnemonic every custodial key is derived from"
    )

    # Database
    database_url: str
    database_echo: bool = False

    # Solana
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    solana_wss_url: str = "wss://api.mainnet-beta.solana.com"
    solana_collection_address: str

    # Ethereum
    ethereum_rpc_url: str = "https://eth.llamarpc.com"
    ethereum_wss_url: str = "wss://ethereum-rpc.publicnode.com"
    ethereum_collection_address: str

    # Tron
    tron_rpc_url: str = "https://api.trongrid.io"
    tron_api_key: str | None = None
    tron_collection_address: str

    # Networks watched by `listen` (comma-separated)
    enabled_networks: str = "solana,ethereum,tron"

    # Watcher settings
    refresh_interval_seconds: float = Field(
        default=300.0, gt=0, description="Registry refresh interval"
    )
    reconnect_max_attempts: int = Field(
        default=5, ge=1, description="Reconnect attempts before alerting"
    )
    reconnect_base_delay_seconds: float = Field(
        default=5.0, ge=0, description="Reconnect delay = base x attempt"
    )
    reconnect_stable_seconds: float = Field(
        default=60.0, ge=0, description="Uptime after which drops stop counting toward the limit"
    )
    connect_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Time bound for a single connect attempt"
    )
    subscribe_delay_seconds: float = Field(
        default=0.1, ge=0, description="Pause between address subscriptions"
    )
    tron_poll_interval_seconds: float = Field(
        default=15.0, gt=0, description="Tron account polling interval"
    )

    # Sweep settings
    max_concurrent_sweeps: int = Field(
        default=3, ge=1, description="Upper bound on sweeps in flight"
    )
    sweep_delay_seconds: float = Field(
        default=1.0, ge=0, description="Pause between sweeps in sweep-all"
    )

    # Prices
    price_cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="USD price cache lifetime"
    )

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = "logs/chainsweep.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        hide_input_in_errors=True,
    )

    @field_validator("master_mnemonic")
    @classmethod
    def validate_mnemonic(cls, v: SecretStr) -> SecretStr:
        """Validate BIP-39 mnemonic (word list and checksum)."""
        words = " ".join(v.get_secret_value().split())
        if not Bip39MnemonicValidator().IsValid(words):
            # Never echo the mnemonic back
            raise ValueError("MASTER_MNEMONIC is not a valid BIP-39 mnemonic")
        return SecretStr(words)

    @field_validator("ethereum_collection_address")
    @classmethod
    def validate_eth_address(cls, v: str) -> str:
        """Validate Ethereum address format."""
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError(
                f"Invalid Ethereum address: {v}. "
                "Must start with 0x and be 42 characters long."
            )
        try:
            int(v[2:], 16)
        except ValueError as exc:
            raise ValueError(f"Invalid Ethereum address format: {v}") from exc
        return v.lower()

    @field_validator("solana_collection_address")
    @classmethod
    def validate_solana_address(cls, v: str) -> str:
        """Validate Solana address (Base58, 32-byte public key)."""
        from chainsweep.services.keys.address_codec import decode_solana_address

        decode_solana_address(v)
        return v

    @field_validator("tron_collection_address")
    @classmethod
    def validate_tron_address(cls, v: str) -> str:
        """Validate Tron address (Base58Check, 0x41 prefix, checksum)."""
        from chainsweep.services.keys.address_codec import decode_tron_address

        decode_tron_address(v)
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql:// or postgresql+asyncpg://"
            )
        return v

    @model_validator(mode="after")
    def validate_networks(self) -> "Settings":
        """Reject unknown network names in ENABLED_NETWORKS."""
        self.get_enabled_networks()
        return self

    def get_enabled_networks(self) -> list[Network]:
        """Parse enabled networks from comma-separated string."""
        result: list[Network] = []
        for name in self.enabled_networks.split(","):
            name = name.strip().lower()
            if not name:
                continue
            try:
                network = Network(name)
            except ValueError as exc:
                raise ValueError(f"Unknown network in ENABLED_NETWORKS: {name}") from exc
            if network not in result:
                result.append(network)
        if not result:
            logger.warning("ENABLED_NETWORKS is empty; no watchers will start")
        return result

    def collection_address(self, network: Network) -> str:
        """Collection wallet for a network."""
        return {
            Network.SOLANA: self.solana_collection_address,
            Network.ETHEREUM: self.ethereum_collection_address,
            Network.TRON: self.tron_collection_address,
        }[network]


# Global settings instance
settings = Settings()
