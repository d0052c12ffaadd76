"""
Submission Client - sends signed transactions to the node.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from txflow.config import ClientConfig, get_config
from txflow.core.transaction import SignedTransaction
from txflow.node.interface import NetworkError, NodeInterface, SubmissionError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SubmissionReceipt:
    """
    Result of a submission attempt.

    ``signature`` is always the locally derived identifier. ``acknowledged``
    is False when the submit round-trip failed at the network level; the
    transaction may still have reached the node, so it must be looked up.
    """
    signature: str
    last_valid_block_height: int
    acknowledged: bool = True
    error: Optional[str] = None


class SubmissionClient:
    """Submits signed transactions and hands back their identifiers."""

    def __init__(self, node: NodeInterface, config: Optional[ClientConfig] = None):
        self.node = node
        self.config = config or get_config()

    async def submit(self, signed_tx: SignedTransaction) -> SubmissionReceipt:
        """
        Submit a signed transaction.

        Args:
            signed_tx: Fully signed transaction

        Returns:
            Receipt carrying the transaction identifier

        Raises:
            SubmissionError: If the node rejects the transaction outright
        """
        signature = signed_tx.identifier
        raw = signed_tx.serialize()

        logger.info(
            "tx_submitting",
            signature=signature,
            last_valid_block_height=signed_tx.last_valid_block_height,
            size=len(raw),
        )

        try:
            node_signature = await asyncio.wait_for(
                self.node.send_transaction(
                    raw,
                    skip_preflight=self.config.skip_preflight,
                    preflight_commitment=self.config.commitment,
                    max_retries=self.config.node_max_retries,
                ),
                timeout=self.config.submit_timeout_seconds,
            )
        except SubmissionError as e:
            e.signature = signature
            logger.error(
                "tx_rejected",
                signature=signature,
                error=str(e),
                error_code=e.error_code,
                logs=e.logs,
            )
            raise
        except (NetworkError, asyncio.TimeoutError) as e:
            # Delivery is unknown; the caller still confirms by identifier.
            error = str(e) or "submit timed out"
            logger.warning("tx_submit_unacknowledged", signature=signature, error=error)
            return SubmissionReceipt(
                signature=signature,
                last_valid_block_height=signed_tx.last_valid_block_height,
                acknowledged=False,
                error=error,
            )

        if node_signature != signature:
            logger.warning(
                "tx_signature_mismatch",
                signature=signature,
                node_signature=node_signature,
            )

        logger.info("tx_submitted", signature=signature)
        return SubmissionReceipt(
            signature=signature,
            last_valid_block_height=signed_tx.last_valid_block_height,
        )
