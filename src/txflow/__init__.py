"""
Ledger Transaction Workflow

A minimal client that builds a signed program invocation, submits it to a
ledger node over JSON-RPC, and determines whether it was confirmed before
its blockhash expired.
"""

__version__ = "0.1.0"

from txflow.core.workflow import TransactionWorkflow
from txflow.core.reporter import Reporter
from txflow.core.transaction import AccountReference, Transaction
from txflow.core.outcome import OutcomeStatus, SubmissionOutcome
from txflow.exceptions import TxFlowError

__all__ = [
    "TransactionWorkflow",
    "Reporter",
    "AccountReference",
    "Transaction",
    "OutcomeStatus",
    "SubmissionOutcome",
    "TxFlowError",
]
