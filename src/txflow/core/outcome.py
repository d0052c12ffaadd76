"""
Submission outcome model.

Represents the terminal result of waiting on one submitted transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from txflow.config import Commitment
from txflow.exceptions import TxFlowError


class OutcomeStatus(str, Enum):
    """Terminal status of a submitted transaction."""
    CONFIRMED = "confirmed"       # Reached the required commitment
    FAILED = "failed"             # Executed, but the program reported an error
    EXPIRED = "expired"           # Freshness window lapsed without a status


@dataclass(frozen=True)
class SubmissionOutcome:
    """
    Terminal result for one transaction identifier.

    Attributes:
        signature: Transaction identifier the outcome refers to
        status: Terminal status
        reason: Failure or expiry detail (None when confirmed)
        slot: Slot the transaction landed in, when known
        commitment: Commitment the node reported, when known
        error: Raw execution error from the node (failed outcomes only)
        block_height: Last block height observed while waiting
    """
    signature: str
    status: OutcomeStatus
    reason: Optional[str] = None
    slot: Optional[int] = None
    commitment: Optional[Commitment] = None
    error: Optional[Any] = None
    block_height: Optional[int] = None
    resolved_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_confirmed(self) -> bool:
        return self.status == OutcomeStatus.CONFIRMED

    @property
    def safe_to_rebuild(self) -> bool:
        """True when the transaction expired without the node ever reporting it."""
        return self.status == OutcomeStatus.EXPIRED and self.slot is None and self.commitment is None

    @classmethod
    def confirmed(cls, signature: str, **kwargs) -> "SubmissionOutcome":
        return cls(signature=signature, status=OutcomeStatus.CONFIRMED, **kwargs)

    @classmethod
    def failed(cls, signature: str, reason: str, **kwargs) -> "SubmissionOutcome":
        return cls(signature=signature, status=OutcomeStatus.FAILED, reason=reason, **kwargs)

    @classmethod
    def expired(cls, signature: str, reason: str, **kwargs) -> "SubmissionOutcome":
        return cls(signature=signature, status=OutcomeStatus.EXPIRED, reason=reason, **kwargs)


class TransactionFailedError(TxFlowError):
    """Raised when a transaction executed but the program reported failure."""

    def __init__(self, outcome: SubmissionOutcome):
        super().__init__(f"Transaction {outcome.signature} failed: {outcome.reason}")
        self.outcome = outcome


class TransactionExpiredError(TxFlowError):
    """
    Raised when a transaction's blockhash expired before it was seen.

    Only a newly built transaction with a fresh blockhash may be retried.
    """

    def __init__(self, outcome: SubmissionOutcome):
        super().__init__(f"Transaction {outcome.signature} expired: {outcome.reason}")
        self.outcome = outcome
