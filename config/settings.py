from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field

from config.constants import (
    SAFE_FACTORY_ADDRESS,
    SAFE_INIT_CODE_HASH,
    SAFE_MULTISEND_ADDRESS,
)


class Settings(BaseSettings):
    """Relay client settings loaded from environment variables."""

    # Relayer
    relayer_host: str = Field(
        default="https://relayer-v2.polymarket.com",
        description="Polymarket relayer base URL",
    )
    relay_request_timeout: float = Field(default=60.0, description="HTTP timeout for relayer requests (seconds)")
    relay_max_retries: int = Field(default=3, ge=1, description="Attempts for idempotent relayer reads")
    relay_max_nonce_retries: int = Field(
        default=2, description="Re-sign attempts after the relayer rejects a stale nonce"
    )

    # Polling
    relay_poll_interval: float = Field(default=3.0, description="Seconds between transaction status polls")
    relay_max_polls: int = Field(default=40, description="Maximum status polls before reporting a timeout")

    # Blockchain
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    chain_id: int = Field(default=137, description="Polygon chain ID")

    # Safe contracts
    safe_factory_address: str = Field(default=SAFE_FACTORY_ADDRESS, description="Safe proxy factory")
    safe_init_code_hash: str = Field(default=SAFE_INIT_CODE_HASH, description="Safe proxy init code hash")
    safe_multisend_address: str = Field(default=SAFE_MULTISEND_ADDRESS, description="Safe MultiSend contract")

    # Polymarket Builder Program
    poly_builder_api_key: str = Field(default="", description="Polymarket Builder API key")
    poly_builder_secret: str = Field(default="", description="Polymarket Builder secret")
    poly_builder_passphrase: str = Field(default="", description="Polymarket Builder passphrase")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level for scripts")

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields in .env
    )

    @property
    def has_builder_credentials(self) -> bool:
        """Return True when all builder credentials are present."""
        return bool(
            self.poly_builder_api_key
            and self.poly_builder_secret
            and self.poly_builder_passphrase
        )


# Global settings instance
settings = Settings()
