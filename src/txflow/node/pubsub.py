"""
Pub/sub websocket watcher for signature notifications.

Subscribes to ``signatureSubscribe`` so the confirmation poll loop can wake
as soon as the node reports the transaction, instead of sleeping a full
backoff interval. The poll loop stays authoritative; a notification only
triggers an early poll.
"""

import asyncio
import json
from typing import Any, Optional

import structlog
import websockets

from txflow.config import ClientConfig, Commitment, get_config
from txflow.node.interface import NetworkError

logger = structlog.get_logger(__name__)


class SignatureSubscription:
    """
    One-shot subscription to a single transaction signature.

    Usage:
        ```python
        async with SignatureSubscription(signature, Commitment.CONFIRMED) as sub:
            notified = await sub.wait(timeout=2.0)
        ```
    """

    def __init__(
        self,
        signature: str,
        commitment: Commitment = Commitment.CONFIRMED,
        config: Optional[ClientConfig] = None,
    ):
        self.config = config or get_config()
        self.signature = signature
        self.commitment = Commitment(commitment)
        self.ws_url = self.config.websocket_url
        self._ws: Optional[Any] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._subscription_id: Optional[int] = None
        self._notified = asyncio.Event()
        self.notification: Optional[dict] = None

    @property
    def notified(self) -> bool:
        return self._notified.is_set()

    async def start(self) -> None:
        """Open the websocket and register the subscription."""
        if self._ws is not None:
            return

        try:
            self._ws = await websockets.connect(
                self.ws_url,
                ping_interval=30,
                ping_timeout=10,
            )
            await self._ws.send(json.dumps({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "signatureSubscribe",
                "params": [self.signature, {"commitment": self.commitment.value}],
            }))
        except (OSError, websockets.WebSocketException) as e:
            await self.close()
            raise NetworkError(f"Failed to subscribe to {self.signature}: {e}") from e

        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.debug("signature_subscribed", signature=self.signature, url=self.ws_url)

    async def _receive_loop(self) -> None:
        """Background task to receive websocket messages."""
        try:
            async for message in self._ws:
                data = json.loads(message)
                if not isinstance(data, dict):
                    logger.debug("pubsub_frame_ignored", signature=self.signature)
                    continue

                if data.get("id") == 1 and "result" in data:
                    self._subscription_id = data["result"]
                elif data.get("method") == "signatureNotification":
                    self.notification = data.get("params", {}).get("result", {}).get("value")
                    self._notified.set()
                    logger.debug("signature_notified", signature=self.signature)
                    return

        except websockets.ConnectionClosed:
            logger.warning("pubsub_connection_closed", signature=self.signature)
        except asyncio.CancelledError:
            pass
        except ValueError as e:
            logger.error("pubsub_receive_error", error=str(e))

    async def wait(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for the notification.

        Returns:
            True if the node has notified, False if the timeout elapsed
        """
        if self._notified.is_set():
            return True
        try:
            await asyncio.wait_for(self._notified.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def close(self) -> None:
        """Cancel the receive loop and close the websocket."""
        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error("pubsub_receive_failed", signature=self.signature, error=str(e))
            self._receive_task = None

        if self._ws:
            if self._subscription_id is not None and not self._notified.is_set():
                try:
                    await self._ws.send(json.dumps({
                        "jsonrpc": "2.0",
                        "id": 2,
                        "method": "signatureUnsubscribe",
                        "params": [self._subscription_id],
                    }))
                except websockets.ConnectionClosed:
                    pass
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> "SignatureSubscription":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
