"""
Blockhash Provider - resolves freshness handles from the node.
"""

import asyncio
from typing import Optional

import structlog

from txflow.config import ClientConfig, get_config
from txflow.core.transaction import FreshnessHandle
from txflow.node.interface import NetworkError, NodeInterface

logger = structlog.get_logger(__name__)


class BlockhashProvider:
    """
    Fetches the node's latest blockhash and its expiry height.

    Every call goes to the node; handles are never cached, since a new
    transaction must never reuse an old handle.
    """

    def __init__(self, node: NodeInterface, config: Optional[ClientConfig] = None):
        self.node = node
        self.config = config or get_config()

    async def fetch_handle(self) -> FreshnessHandle:
        """
        Fetch a fresh handle at the configured commitment.

        Raises:
            NetworkError: If the node is unreachable or the reply is malformed
        """
        try:
            handle = await asyncio.wait_for(
                self.node.get_latest_blockhash(self.config.commitment),
                timeout=self.config.rpc_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError("Timed out fetching latest blockhash") from e

        if not isinstance(handle, FreshnessHandle) or handle.last_valid_block_height < 0:
            raise NetworkError(f"Malformed freshness handle: {handle!r}")

        logger.debug(
            "freshness_handle_fetched",
            blockhash=str(handle.blockhash),
            last_valid_block_height=handle.last_valid_block_height,
        )
        return handle
