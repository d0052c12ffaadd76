"""
JSON-RPC adapter for node integration.

Provides node access via the JSON-RPC 2.0 HTTP interface.
"""

import base64
import uuid
from typing import Any, List, Optional

import httpx
import structlog

from solders.hash import Hash

from txflow.config import ClientConfig, Commitment, get_config
from txflow.core.transaction import FreshnessHandle
from txflow.node.interface import (
    NodeInterface,
    NetworkError,
    SignatureStatus,
    SubmissionError,
)

logger = structlog.get_logger(__name__)


class JsonRpcError(NetworkError):
    """Raised when the node answers a request with a JSON-RPC error object."""

    def __init__(self, method: str, error: dict):
        self.method = method
        self.code = error.get("code")
        self.data = error.get("data")
        super().__init__(f"{method} failed ({self.code}): {error.get('message', 'Unknown error')}")


class JsonRpcAdapter(NodeInterface):
    """
    JSON-RPC over HTTP adapter.

    Implements the NodeInterface using the node's JSON-RPC endpoint.
    A single adapter may serve any number of concurrent workflows.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the JSON-RPC adapter.

        Args:
            config: Client configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.rpc_url = self.config.rpc_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=self.config.rpc_timeout_seconds,
            transport=self._transport,
        )
        logger.info("rpc_connected", url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected")

    async def __aenter__(self) -> "JsonRpcAdapter":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Send a JSON-RPC request and return its result."""
        if not self._client:
            await self.connect()

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
        }
        if params:
            payload["params"] = params

        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkError(f"RPC request timeout: {method}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"RPC request failed: {method}: {e}") from e

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text[:200],
            )
            raise NetworkError(f"RPC HTTP {response.status_code} for {method}")

        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(f"Malformed RPC response for {method}") from e

        if not isinstance(data, dict):
            raise NetworkError(f"Malformed RPC response for {method}")
        if "error" in data:
            raise JsonRpcError(method, data["error"] or {})
        if "result" not in data:
            raise NetworkError(f"RPC response for {method} has no result")

        return data["result"]

    async def get_health(self) -> bool:
        """Check node health."""
        try:
            return await self._request("getHealth") == "ok"
        except JsonRpcError as e:
            logger.warning("rpc_node_unhealthy", error=str(e))
            return False

    async def get_latest_blockhash(
        self,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> FreshnessHandle:
        """Get a recent blockhash and the height it stays valid until."""
        result = await self._request(
            "getLatestBlockhash",
            [{"commitment": Commitment(commitment).value}],
        )

        try:
            value = result["value"]
            handle = FreshnessHandle(
                blockhash=Hash.from_string(value["blockhash"]),
                last_valid_block_height=int(value["lastValidBlockHeight"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed getLatestBlockhash result: {result!r}") from e

        logger.debug(
            "blockhash_fetched",
            blockhash=str(handle.blockhash),
            last_valid_block_height=handle.last_valid_block_height,
        )
        return handle

    async def get_block_height(
        self,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> int:
        """Get the current block height."""
        result = await self._request(
            "getBlockHeight",
            [{"commitment": Commitment(commitment).value}],
        )

        if isinstance(result, bool) or not isinstance(result, int):
            raise NetworkError(f"Malformed getBlockHeight result: {result!r}")
        return result

    async def send_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: Commitment = Commitment.CONFIRMED,
        max_retries: Optional[int] = None,
    ) -> str:
        """Submit a signed transaction."""
        opts = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": Commitment(preflight_commitment).value,
        }
        if max_retries is not None:
            opts["maxRetries"] = max_retries

        encoded = base64.b64encode(raw_transaction).decode("ascii")

        try:
            result = await self._request("sendTransaction", [encoded, opts])
        except JsonRpcError as e:
            logs = []
            if isinstance(e.data, dict):
                logs = e.data.get("logs") or []
            raise SubmissionError(str(e), error_code=e.code, logs=logs) from e

        if not isinstance(result, str):
            raise NetworkError(f"Malformed sendTransaction result: {result!r}")

        logger.info("tx_submitted_rpc", signature=result)
        return result

    async def get_signature_statuses(
        self,
        signatures: List[str],
        search_transaction_history: bool = True,
    ) -> List[Optional[SignatureStatus]]:
        """Get transaction statuses."""
        result = await self._request(
            "getSignatureStatuses",
            [signatures, {"searchTransactionHistory": search_transaction_history}],
        )

        try:
            values = result["value"]
            return [self._parse_status(item) for item in values]
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed getSignatureStatuses result: {result!r}") from e

    @staticmethod
    def _parse_status(item: Optional[dict]) -> Optional[SignatureStatus]:
        """Parse a status entry into a SignatureStatus."""
        if item is None:
            return None

        level = item.get("confirmationStatus")
        return SignatureStatus(
            slot=int(item["slot"]),
            confirmations=item.get("confirmations"),
            err=item.get("err"),
            confirmation_status=Commitment(level) if level else None,
        )
