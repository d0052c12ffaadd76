"""
Transaction workflow orchestrator.

Coordinates all components to take one program invocation from an
unsigned transaction to a reported outcome.
"""

from typing import Iterable, List, Optional

import structlog

from solders.keypair import Keypair

from txflow.config import ClientConfig, Commitment, get_config
from txflow.core.outcome import SubmissionOutcome
from txflow.core.reporter import Reporter
from txflow.core.transaction import AccountReference, Transaction
from txflow.engine.confirmation import ConfirmationWaiter
from txflow.node.interface import NodeInterface
from txflow.node.rpc import JsonRpcAdapter
from txflow.tx.blockhash import BlockhashProvider
from txflow.tx.builder import PubkeyLike, TransactionBuilder
from txflow.tx.signer import TransactionSigner
from txflow.tx.submitter import SubmissionClient

logger = structlog.get_logger(__name__)


class TransactionWorkflow:
    """
    Main workflow orchestrator.

    Pipeline:
    - Blockhash provider fetches a freshness handle
    - Builder assembles and stamps the transaction
    - Signer signs it with the borrowed keypairs
    - Submission client sends it and returns its identifier
    - Confirmation waiter resolves the identifier to an outcome
    - Reporter turns the outcome into a result line or an error

    Each step raises on failure, ending the pipeline there. Every call owns
    its own transaction, so one workflow may run many invocations at once.

    Usage:
        ```python
        async with TransactionWorkflow() as workflow:
            line = await workflow.execute(
                program_id,
                [AccountReference(signer.pubkey(), is_signer=True, is_writable=True)],
                [signer],
            )
        ```
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        node: Optional[NodeInterface] = None,
    ):
        """
        Initialize the workflow.

        Args:
            config: Client configuration
            node: Custom node interface (JSON-RPC adapter if not provided)
        """
        self.config = config or get_config()
        self._owns_node = node is None
        self.node = node or JsonRpcAdapter(self.config)

        self.provider = BlockhashProvider(self.node, self.config)
        self.builder = TransactionBuilder()
        self.signer = TransactionSigner()
        self.submitter = SubmissionClient(self.node, self.config)
        self.waiter = ConfirmationWaiter(self.node, self.config)
        self.reporter = Reporter(self.config)

    async def __aenter__(self) -> "TransactionWorkflow":
        await self.node.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Disconnect the node if this workflow created it."""
        if self._owns_node:
            await self.node.disconnect()

    async def invoke_program(
        self,
        program_id: PubkeyLike,
        account_references: Iterable[AccountReference],
        keypairs: Iterable[Keypair],
        instruction_data: bytes = b"",
        commitment: Optional[Commitment] = None,
        max_attempts: int = 1,
    ) -> SubmissionOutcome:
        """
        Invoke a program once and wait for the outcome.

        Args:
            program_id: Target program identifier
            account_references: Accounts passed to the program
            keypairs: Keypairs for every signer reference
            instruction_data: Opaque instruction payload
            commitment: Required commitment (config default when None)
            max_attempts: Total attempts; an attempt that expired unseen is
                rebuilt with a fresh blockhash until attempts run out

        Returns:
            Outcome of the last attempt

        Raises:
            ConfirmationTimeoutError: If the deadline passed with the outcome
                unknown; such an attempt is never rebuilt
        """
        references = list(account_references)
        keypairs = list(keypairs)

        outcome: Optional[SubmissionOutcome] = None
        for attempt in range(1, max(1, max_attempts) + 1):
            tx = self.builder.build(program_id, references, instruction_data)
            outcome = await self.send(tx, keypairs, commitment)

            if not outcome.safe_to_rebuild or attempt >= max_attempts:
                break

            logger.warning(
                "transaction_expired_rebuilding",
                signature=outcome.signature,
                attempt=attempt,
                max_attempts=max_attempts,
            )

        return outcome

    async def send(
        self,
        transaction: Transaction,
        keypairs: List[Keypair],
        commitment: Optional[Commitment] = None,
    ) -> SubmissionOutcome:
        """
        Stamp, sign, submit and confirm a built transaction.

        Signers are checked before any node call, so a missing keypair
        never costs a round-trip.
        """
        self.signer.check_signers(transaction, keypairs)

        handle = await self.provider.fetch_handle()
        self.builder.stamp(transaction, handle)
        signed = self.signer.sign(transaction, keypairs)

        receipt = await self.submitter.submit(signed)

        return await self.waiter.await_confirmation(
            receipt.signature,
            receipt.last_valid_block_height,
            commitment,
        )

    async def confirm(
        self,
        signature: str,
        last_valid_block_height: int,
        commitment: Optional[Commitment] = None,
    ) -> SubmissionOutcome:
        """Resolve an already submitted transaction without resending it."""
        return await self.waiter.await_confirmation(signature, last_valid_block_height, commitment)

    async def execute(
        self,
        program_id: PubkeyLike,
        account_references: Iterable[AccountReference],
        keypairs: Iterable[Keypair],
        instruction_data: bytes = b"",
        commitment: Optional[Commitment] = None,
        max_attempts: int = 1,
    ) -> str:
        """
        Invoke a program and report the outcome.

        Returns:
            Success line with an explorer link

        Raises:
            TransactionFailedError: If the transaction failed on-chain
            TransactionExpiredError: If every attempt expired
        """
        outcome = await self.invoke_program(
            program_id,
            account_references,
            keypairs,
            instruction_data=instruction_data,
            commitment=commitment,
            max_attempts=max_attempts,
        )
        return self.reporter.report(outcome)
