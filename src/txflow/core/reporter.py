"""
Reporter - turns outcomes and errors into user-facing results.
"""

from typing import Optional
from urllib.parse import quote

import structlog

from txflow.config import ClientConfig, get_config
from txflow.core.outcome import (
    OutcomeStatus,
    SubmissionOutcome,
    TransactionExpiredError,
    TransactionFailedError,
)
from txflow.core.transaction import ValidationError
from txflow.engine.confirmation import ConfirmationTimeoutError
from txflow.node.interface import NetworkError, SubmissionError
from txflow.tx.keys import KeyLoadError
from txflow.tx.signer import MissingSignerError

logger = structlog.get_logger(__name__)


class Reporter:
    """
    Single point where outcomes become output.

    Confirmed outcomes produce a result line with an explorer link;
    failed and expired outcomes are raised as errors.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or get_config()

    def explorer_link(self, signature: str) -> str:
        """Build an explorer URL for ``signature``."""
        base = self.config.explorer_url.rstrip("/")
        url = f"{base}/tx/{signature}?cluster={self.config.explorer_cluster}"
        if self.config.explorer_cluster == "custom":
            url += f"&customUrl={quote(self.config.rpc_url, safe='')}"
        return url

    def report(self, outcome: SubmissionOutcome) -> str:
        """
        Report an outcome.

        Returns:
            The success line for a confirmed outcome

        Raises:
            TransactionFailedError: If the transaction failed on-chain
            TransactionExpiredError: If the transaction's blockhash expired
        """
        if outcome.status == OutcomeStatus.CONFIRMED:
            line = f"Transaction successful! {self.explorer_link(outcome.signature)}"
            logger.info(
                "transaction_successful",
                signature=outcome.signature,
                slot=outcome.slot,
                commitment=outcome.commitment.value if outcome.commitment else None,
            )
            return line

        if outcome.status == OutcomeStatus.FAILED:
            logger.error("transaction_failed", signature=outcome.signature, reason=outcome.reason)
            raise TransactionFailedError(outcome)

        logger.error("transaction_expired", signature=outcome.signature, reason=outcome.reason)
        raise TransactionExpiredError(outcome)

    @staticmethod
    def describe_error(error: Exception) -> str:
        """Render an error as a single line with its retry guidance."""
        if isinstance(error, TransactionExpiredError):
            hint = "rebuild the transaction with a fresh blockhash to retry"
        elif isinstance(error, TransactionFailedError):
            hint = "fix the program-level cause before retrying"
        elif isinstance(error, ConfirmationTimeoutError):
            if error.seen:
                hint = "the node has seen this transaction; query its status instead of resending"
            else:
                hint = "query the status again before building a replacement"
        elif isinstance(error, SubmissionError):
            hint = "the node rejected this transaction; do not resend it unchanged"
            if error.logs:
                hint += "\n" + "\n".join(f"  {line}" for line in error.logs)
        elif isinstance(error, KeyLoadError):
            hint = "check the keypair file or environment variable"
        elif isinstance(error, MissingSignerError):
            hint = "supply keypairs for every required signer"
        elif isinstance(error, ValidationError):
            hint = "fix the transaction inputs"
        elif isinstance(error, NetworkError):
            hint = "node unreachable; retry the workflow with a fresh blockhash"
        else:
            hint = "unexpected error"
        return f"Transaction error ({type(error).__name__}): {error} [{hint}]"
