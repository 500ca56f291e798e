from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Normalise values that arrive with inconsistent formatting."""

        super().model_post_init(__context)

        key = (self.worker_private_key or "").strip()
        if key and not key.startswith("0x"):
            key = f"0x{key}"
        object.__setattr__(self, "worker_private_key", key)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3001, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Chain Connection
    rpc_url: str = Field(
        default="",
        description="JSON-RPC endpoint of the network the vault is deployed on",
        validation_alias=AliasChoices("rpc_url", "RPC_URL", "POLYGON_AMOY_RPC_URL"),
    )
    chain_id: int = Field(default=80002, description="Chain ID used when signing (Polygon Amoy)")
    rpc_timeout_seconds: float = Field(default=30.0, description="Timeout for a single JSON-RPC call")
    nonce_block_tag: str = Field(
        default="pending",
        description="Block tag used when reading the authoritative transaction count",
    )

    # Relay Worker Account
    worker_private_key: str = Field(
        default="",
        description="Signing key of the relay account; the queue stays disabled without it",
        validation_alias=AliasChoices(
            "worker_private_key", "WORKER_PRIVATE_KEY", "BACKEND_WORKER_PRIVATE_KEY"
        ),
    )

    # Transaction Queue
    tx_gas_limit: int = Field(default=500_000, ge=21_000, description="Gas limit applied to every relayed transaction")
    queue_poll_interval_seconds: float = Field(default=5.0, gt=0, description="How often the queue driver ticks")
    confirmation_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Max seconds to wait for a submitted transaction to be mined",
    )
    confirmation_poll_seconds: float = Field(default=2.0, gt=0, description="Receipt polling interval")
    queue_max_history: int = Field(
        default=1000,
        ge=0,
        description="Finished jobs kept for inspection before the oldest are evicted",
    )
    queue_autostart: bool = Field(default=True, description="Start the queue driver alongside FastAPI")

    # Vault Contract
    vault_address: str = Field(default="", description="Address of the deployed SusuGroupVault")

    # AI Split Advisor
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key",
        validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "GOOGLE_GEMINI_API_KEY"),
    )
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent",
        description="Gemini generateContent endpoint",
    )
    ai_request_timeout_seconds: float = Field(default=30.0, description="Timeout for AI suggestion requests")

    @property
    def has_worker_key(self) -> bool:
        return bool(self.worker_private_key)

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_vault(self) -> bool:
        return bool(self.vault_address)

    def resolve_rpc_url(self) -> Optional[str]:
        url = (self.rpc_url or "").strip()
        return url or None


# Global settings instance
settings = Settings()
