"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Callable, Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction as WireTransaction

from txflow.config import ClientConfig, Commitment
from txflow.core.transaction import AccountReference, FreshnessHandle
from txflow.node.interface import (
    NetworkError,
    NodeInterface,
    SignatureStatus,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> ClientConfig:
    """Create a test configuration with fast polling."""
    return ClientConfig(
        rpc_url="http://127.0.0.1:8899",
        commitment=Commitment.CONFIRMED,
        rpc_timeout_seconds=2.0,
        submit_timeout_seconds=0.5,
        poll_timeout_seconds=0.5,
        poll_interval_seconds=0.001,
        poll_interval_max_seconds=0.005,
        poll_backoff_factor=2.0,
        block_interval_seconds=0.01,
        deadline_grace_seconds=1.0,
        max_poll_errors=3,
        use_subscription=False,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

PROGRAM_ID = Pubkey(bytes(range(1, 33)))


def build_confirmed_status(slot: int = 42, commitment: Commitment = Commitment.CONFIRMED) -> SignatureStatus:
    """Build a successful status at the given commitment."""
    return SignatureStatus(
        slot=slot,
        confirmations=None if commitment == Commitment.FINALIZED else 1,
        err=None,
        confirmation_status=commitment,
    )


def build_failed_status(slot: int = 42, err: Optional[dict] = None) -> SignatureStatus:
    """Build a status carrying an execution error."""
    return SignatureStatus(
        slot=slot,
        confirmations=0,
        err=err or {"InstructionError": [0, {"Custom": 1}]},
        confirmation_status=Commitment.PROCESSED,
    )


@pytest.fixture
def program_id() -> Pubkey:
    """A fixed 32-byte program identifier."""
    return PROGRAM_ID


@pytest.fixture
def signer() -> Keypair:
    """A fresh signer keypair."""
    return Keypair()


@pytest.fixture
def signer_reference(signer) -> AccountReference:
    """The signer as a writable signer account."""
    return AccountReference(signer.pubkey(), is_signer=True, is_writable=True)


@pytest.fixture
def confirmed_status() -> Callable[..., SignatureStatus]:
    """Factory for successful statuses."""
    return build_confirmed_status


@pytest.fixture
def failed_status() -> Callable[..., SignatureStatus]:
    """Factory for statuses carrying an execution error."""
    return build_failed_status


@pytest.fixture
def handle() -> FreshnessHandle:
    """A freshness handle valid until height 250."""
    return FreshnessHandle(blockhash=Hash.new_unique(), last_valid_block_height=250)


# ============================================================================
# Simulated Node
# ============================================================================

class SimulatedNode(NodeInterface):
    """
    In-memory node for testing.

    Block height advances by ``height_step`` on every height query. Status
    replies follow a per-signature script; the last entry repeats once
    the script runs out. Signatures without a script use ``default_script``.
    ``on_send`` runs after every accepted submission with the node and the
    returned signature; ``height_delay`` stalls every height query.
    """

    def __init__(
        self,
        block_height: int = 100,
        blockhash_validity: int = 150,
        height_step: int = 0,
    ):
        self.block_height = block_height
        self.blockhash_validity = blockhash_validity
        self.height_step = height_step
        self.default_script: List[Optional[SignatureStatus]] = [None]
        self.scripts: Dict[str, List[Optional[SignatureStatus]]] = {}
        self.status_calls: Dict[str, int] = {}
        self.submitted: List[bytes] = []
        self.calls: List[str] = []
        self.send_error: Optional[Exception] = None
        self.send_delay: float = 0.0
        self.status_errors: int = 0
        self.height_delay: float = 0.0
        self.on_send: Optional[Callable[["SimulatedNode", str], None]] = None
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_latest_blockhash(self, commitment=Commitment.CONFIRMED) -> FreshnessHandle:
        self.calls.append("getLatestBlockhash")
        return FreshnessHandle(
            blockhash=Hash.new_unique(),
            last_valid_block_height=self.block_height + self.blockhash_validity,
        )

    async def get_block_height(self, commitment=Commitment.CONFIRMED) -> int:
        self.calls.append("getBlockHeight")
        if self.height_delay:
            await asyncio.sleep(self.height_delay)
        height = self.block_height
        self.block_height += self.height_step
        return height

    async def send_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: Commitment = Commitment.CONFIRMED,
        max_retries: Optional[int] = None,
    ) -> str:
        self.calls.append("sendTransaction")
        self.submitted.append(raw_transaction)
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.send_error is not None:
            raise self.send_error
        signature = str(WireTransaction.from_bytes(raw_transaction).signatures[0])
        if self.on_send is not None:
            self.on_send(self, signature)
        return signature

    async def get_signature_statuses(
        self,
        signatures: List[str],
        search_transaction_history: bool = True,
    ) -> List[Optional[SignatureStatus]]:
        self.calls.append("getSignatureStatuses")
        if self.status_errors > 0:
            self.status_errors -= 1
            raise NetworkError("simulated connection reset")

        results = []
        for signature in signatures:
            script = self.scripts.get(signature, self.default_script)
            index = self.status_calls.get(signature, 0)
            self.status_calls[signature] = index + 1
            results.append(script[min(index, len(script) - 1)])
        return results

    def script_status(self, signature: str, *statuses: Optional[SignatureStatus]) -> None:
        """Script the replies for one signature."""
        self.scripts[signature] = list(statuses)

    def network_calls(self) -> int:
        return len(self.calls)


@pytest.fixture
def node() -> SimulatedNode:
    """Create a simulated node."""
    return SimulatedNode()


@pytest.fixture
def make_node() -> Callable[..., SimulatedNode]:
    """Factory for simulated nodes with custom height behaviour."""
    return SimulatedNode
