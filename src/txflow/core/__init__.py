"""
Core domain models for the transaction workflow.
"""

from txflow.core.transaction import (
    AccountReference,
    FreshnessHandle,
    Instruction,
    SignedTransaction,
    Transaction,
    ValidationError,
)
from txflow.core.outcome import (
    OutcomeStatus,
    SubmissionOutcome,
    TransactionExpiredError,
    TransactionFailedError,
)

__all__ = [
    "AccountReference",
    "FreshnessHandle",
    "Instruction",
    "SignedTransaction",
    "Transaction",
    "ValidationError",
    "OutcomeStatus",
    "SubmissionOutcome",
    "TransactionExpiredError",
    "TransactionFailedError",
]
