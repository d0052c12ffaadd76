"""
Configuration management for the transaction client.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Commitment(str, Enum):
    """Node confidence tiers, ordered from weakest to strongest."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return _COMMITMENT_RANK[self]

    def satisfies(self, required: "Commitment") -> bool:
        """Check whether this level is at least as strong as ``required``."""
        return self.rank >= Commitment(required).rank


_COMMITMENT_RANK = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 2,
}


class ClientConfig(BaseSettings):
    """
    Configuration settings for the transaction client.

    All settings can be configured via environment variables with the TXFLOW_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TXFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Node settings
    rpc_url: str = Field(
        default="http://127.0.0.1:8899",
        description="JSON-RPC endpoint of the ledger node"
    )
    ws_url: Optional[str] = Field(
        default=None,
        description="Pub/sub websocket endpoint (derived from rpc_url when unset)"
    )
    commitment: Commitment = Field(
        default=Commitment.CONFIRMED,
        description="Commitment level a transaction must reach to count as confirmed"
    )
    rpc_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single JSON-RPC request"
    )

    # Explorer settings
    explorer_url: str = Field(
        default="https://explorer.solana.com",
        description="Base URL of the block explorer used in result lines"
    )
    explorer_cluster: str = Field(
        default="custom",
        description="Explorer cluster name; 'custom' links back to rpc_url"
    )

    # Submission settings
    submit_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for the sendTransaction round-trip"
    )
    skip_preflight: bool = Field(
        default=False,
        description="Skip the node's preflight simulation"
    )
    node_max_retries: Optional[int] = Field(
        default=None,
        ge=0,
        description="How many times the node itself rebroadcasts the transaction"
    )

    # Confirmation settings
    poll_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for one status/height poll"
    )
    poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Initial delay between confirmation polls"
    )
    poll_interval_max_seconds: float = Field(
        default=4.0,
        gt=0,
        description="Upper bound for the backed-off poll delay"
    )
    poll_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the poll delay after every poll"
    )
    block_interval_seconds: float = Field(
        default=0.4,
        gt=0,
        description="Estimated block time used to turn heights into a deadline"
    )
    deadline_grace_seconds: float = Field(
        default=15.0,
        ge=0,
        description="Extra wall-clock time allowed past the estimated expiry"
    )
    max_poll_errors: int = Field(
        default=3,
        ge=1,
        description="Consecutive network errors tolerated while polling"
    )
    use_subscription: bool = Field(
        default=False,
        description="Wake the poll loop early via signatureSubscribe"
    )

    # Key settings
    program_keypair_path: Optional[str] = Field(
        default="deploy/test-keypair.json",
        description="Keypair file whose public key is the target program id"
    )
    signer_keypair_path: Optional[str] = Field(
        default=None,
        description="Keypair file for the transaction signer"
    )
    signer_env_var: str = Field(
        default="SIGNER",
        description="Environment variable holding the signer keypair JSON"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def websocket_url(self) -> str:
        """Get the pub/sub URL, following the node convention of rpc port + 1."""
        if self.ws_url:
            return self.ws_url

        parts = urlsplit(self.rpc_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        netloc = parts.netloc
        if parts.port:
            netloc = f"{parts.hostname}:{parts.port + 1}"
        return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


# Global config instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
