"""
Confirmation Waiter - resolves a submitted transaction to a terminal outcome.

Polls the node's block height and the transaction's signature status until
the transaction reaches the required commitment, reports an execution error,
or its blockhash expires. Polls back off exponentially up to a cap.

State machine:
    PENDING -> CONFIRMED | FAILED | EXPIRED   (all terminal)

EXPIRED is only reached when the node never reported a status and its
height passed the expiry height. Any other lapse of the wall-clock deadline
raises ConfirmationTimeoutError, leaving the outcome unknown.
"""

import asyncio
from typing import Callable, Optional

import structlog

from txflow.config import ClientConfig, Commitment, get_config
from txflow.core.outcome import SubmissionOutcome
from txflow.exceptions import TxFlowError
from txflow.node.interface import NetworkError, NodeInterface, SignatureStatus
from txflow.node.pubsub import SignatureSubscription

logger = structlog.get_logger(__name__)

SubscriptionFactory = Callable[[str, Commitment], SignatureSubscription]


class ConfirmationTimeoutError(TxFlowError):
    """
    Raised when the confirmation deadline passes before a terminal outcome.

    Unlike an expired outcome this does not prove the transaction was
    dropped: the node may have seen it already (``status`` is set) or the
    node's height may not have passed the expiry height yet. Query the
    signature again before building a replacement.
    """

    def __init__(
        self,
        signature: str,
        reason: str,
        status: Optional[SignatureStatus] = None,
        block_height: Optional[int] = None,
    ):
        self.signature = signature
        self.reason = reason
        self.status = status
        self.block_height = block_height
        super().__init__(f"Transaction {signature} unresolved: {reason}")

    @property
    def seen(self) -> bool:
        return self.status is not None


class ConfirmationWaiter:
    """
    Waits for one transaction identifier at a time.

    Holds no per-transaction state, so a single waiter can serve
    concurrent workflows.
    """

    def __init__(
        self,
        node: NodeInterface,
        config: Optional[ClientConfig] = None,
        subscription_factory: Optional[SubscriptionFactory] = None,
    ):
        """
        Initialize the waiter.

        Args:
            node: Node to poll
            config: Client configuration. Uses global config if not provided.
            subscription_factory: Builds signature subscriptions when
                ``config.use_subscription`` is set
        """
        self.node = node
        self.config = config or get_config()
        self._subscription_factory = subscription_factory or (
            lambda signature, commitment: SignatureSubscription(signature, commitment, self.config)
        )

    def deadline_seconds(self, current_height: int, last_valid_block_height: int) -> float:
        """Translate the remaining height window into wall-clock seconds."""
        blocks_left = max(0, last_valid_block_height - current_height + 1)
        return blocks_left * self.config.block_interval_seconds + self.config.deadline_grace_seconds

    async def await_confirmation(
        self,
        signature: str,
        last_valid_block_height: int,
        commitment: Optional[Commitment] = None,
    ) -> SubmissionOutcome:
        """
        Wait until ``signature`` resolves.

        Args:
            signature: Transaction identifier returned by submission
            last_valid_block_height: Expiry height of the transaction's blockhash
            commitment: Required commitment (config default when None)

        Returns:
            Terminal outcome: confirmed, failed, or expired

        Raises:
            NetworkError: If polling fails more than ``max_poll_errors`` times in a row
            ConfirmationTimeoutError: If the wall-clock deadline passes before
                the outcome is known; the transaction may still land
        """
        required = Commitment(commitment or self.config.commitment)

        logger.info(
            "confirmation_waiting",
            signature=signature,
            last_valid_block_height=last_valid_block_height,
            commitment=required.value,
        )

        subscription = await self._open_subscription(signature, required)
        try:
            outcome = await self._poll(signature, last_valid_block_height, required, subscription)
        finally:
            if subscription is not None:
                await subscription.close()

        logger.info(
            "confirmation_resolved",
            signature=signature,
            status=outcome.status.value,
            reason=outcome.reason,
            slot=outcome.slot,
            block_height=outcome.block_height,
        )
        return outcome

    async def _open_subscription(
        self,
        signature: str,
        commitment: Commitment,
    ) -> Optional[SignatureSubscription]:
        if not self.config.use_subscription:
            return None

        subscription = self._subscription_factory(signature, commitment)
        try:
            await subscription.start()
        except NetworkError as e:
            logger.warning("subscription_unavailable", signature=signature, error=str(e))
            return None
        return subscription

    async def _call(self, coro):
        """Run one node call under the poll timeout."""
        try:
            return await asyncio.wait_for(coro, timeout=self.config.poll_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise NetworkError("Confirmation poll timed out") from e

    async def _poll(
        self,
        signature: str,
        last_valid_block_height: int,
        required: Commitment,
        subscription: Optional[SignatureSubscription],
    ) -> SubmissionOutcome:
        loop = asyncio.get_running_loop()
        delay = self.config.poll_interval_seconds
        deadline: Optional[float] = None
        last_seen: Optional[SignatureStatus] = None
        errors = 0
        height: Optional[int] = None
        status: Optional[SignatureStatus] = None
        wake = subscription

        while True:
            try:
                # Height first: a status missing after this read means the
                # transaction had not landed by this height.
                height = await self._call(self.node.get_block_height(required))
                status = await self._call(self.node.get_signature_status(signature))
            except NetworkError as e:
                errors += 1
                logger.warning(
                    "confirmation_poll_error",
                    signature=signature,
                    error=str(e),
                    consecutive=errors,
                )
                if errors > self.config.max_poll_errors:
                    raise
            else:
                errors = 0
                outcome = self._evaluate(
                    signature, status, height, last_valid_block_height, required,
                    seen=last_seen is not None,
                )
                if outcome is not None:
                    return outcome

                now = loop.time()
                if deadline is None:
                    deadline = now + self.deadline_seconds(height, last_valid_block_height)
                if status is not None:
                    if last_seen is None:
                        deadline = max(deadline, now + self.config.deadline_grace_seconds)
                    last_seen = status

                logger.debug(
                    "confirmation_pending",
                    signature=signature,
                    block_height=height,
                    commitment=status.commitment.value if status else None,
                )

            now = loop.time()
            if deadline is not None and now >= deadline:
                raise self._deadline_error(
                    signature, last_seen, height, last_valid_block_height, required,
                )

            pause = delay if deadline is None else min(delay, deadline - now)
            if wake is not None:
                if await wake.wait(pause):
                    wake = None
            else:
                await asyncio.sleep(pause)
            delay = min(delay * self.config.poll_backoff_factor, self.config.poll_interval_max_seconds)

    @staticmethod
    def _evaluate(
        signature: str,
        status: Optional[SignatureStatus],
        height: int,
        last_valid_block_height: int,
        required: Commitment,
        seen: bool = False,
    ) -> Optional[SubmissionOutcome]:
        """
        Map one poll to a terminal outcome, or None while still pending.

        Expiry requires that no status was ever reported: a transaction the
        node has seen may still settle, so it never expires.
        """
        if status is not None:
            if status.failed:
                return SubmissionOutcome.failed(
                    signature,
                    reason=str(status.err),
                    slot=status.slot,
                    commitment=status.commitment,
                    error=status.err,
                    block_height=height,
                )
            if status.commitment.satisfies(required):
                return SubmissionOutcome.confirmed(
                    signature,
                    slot=status.slot,
                    commitment=status.commitment,
                    block_height=height,
                )
            return None

        if not seen and height > last_valid_block_height:
            return SubmissionOutcome.expired(
                signature,
                reason=(
                    f"block height {height} exceeded last valid block height "
                    f"{last_valid_block_height}"
                ),
                block_height=height,
            )
        return None

    @staticmethod
    def _deadline_error(
        signature: str,
        status: Optional[SignatureStatus],
        height: Optional[int],
        last_valid_block_height: int,
        required: Commitment,
    ) -> ConfirmationTimeoutError:
        if status is not None:
            reason = (
                f"reached {status.commitment.value} but not {required.value} "
                f"before the confirmation deadline"
            )
        else:
            reason = (
                f"no status reported before the confirmation deadline at block height "
                f"{height} (last valid {last_valid_block_height})"
            )
        return ConfirmationTimeoutError(signature, reason, status=status, block_height=height)
