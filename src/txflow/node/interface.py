"""
Abstract interface for ledger node access.

Defines the contract for node RPC access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from txflow.config import Commitment
from txflow.core.transaction import FreshnessHandle
from txflow.exceptions import TxFlowError


@dataclass
class SignatureStatus:
    """Status of a transaction as reported by the node."""
    slot: int
    confirmations: Optional[int]       # None once the slot is rooted
    err: Optional[Any]                 # Execution error, None on success
    confirmation_status: Optional[Commitment]

    @property
    def commitment(self) -> Commitment:
        """Effective commitment; a rooted status without a level is finalized."""
        if self.confirmation_status is not None:
            return self.confirmation_status
        if self.confirmations is None:
            return Commitment.FINALIZED
        return Commitment.PROCESSED

    @property
    def failed(self) -> bool:
        return self.err is not None


class NodeInterface(ABC):
    """
    Abstract interface for ledger node access.

    This interface defines all node operations the workflow needs:
    - Freshness handle (recent blockhash) lookup
    - Block height queries
    - Transaction submission
    - Signature status queries

    Implementations must be safe to share between concurrent workflows.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            NetworkError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node."""
        pass

    @abstractmethod
    async def get_latest_blockhash(
        self,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> FreshnessHandle:
        """
        Get the most recent blockhash and its expiry height.

        Returns:
            Freshness handle for new transactions
        """
        pass

    @abstractmethod
    async def get_block_height(
        self,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> int:
        """
        Get the current block height.

        Returns:
            Block height at the given commitment
        """
        pass

    @abstractmethod
    async def send_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: Commitment = Commitment.CONFIRMED,
        max_retries: Optional[int] = None,
    ) -> str:
        """
        Submit a serialized, signed transaction.

        Args:
            raw_transaction: Wire-encoded transaction
            skip_preflight: Skip the node's simulation before forwarding
            preflight_commitment: Commitment used for the simulation
            max_retries: Node-side rebroadcast limit (node default when None)

        Returns:
            Transaction signature reported by the node

        Raises:
            SubmissionError: If the node rejects the transaction
            NetworkError: If the node cannot be reached
        """
        pass

    @abstractmethod
    async def get_signature_statuses(
        self,
        signatures: List[str],
        search_transaction_history: bool = True,
    ) -> List[Optional[SignatureStatus]]:
        """
        Get the status of several transactions.

        Returns:
            One entry per signature, None where the node has no record
        """
        pass

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        """Get the status of a single transaction."""
        statuses = await self.get_signature_statuses([signature])
        return statuses[0] if statuses else None

    async def get_health(self) -> bool:
        """Check whether the node reports itself healthy."""
        return True


class NetworkError(TxFlowError):
    """Raised when the node is unreachable or returns a malformed response."""
    pass


class SubmissionError(TxFlowError):
    """Raised when the node rejects a transaction outright."""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        logs: Optional[List[str]] = None,
        signature: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.logs = logs or []
        self.signature = signature
