"""
Test suite for the JSON-RPC node adapter.

Uses an httpx mock transport in place of a running node.
"""

import base64
import json

import httpx
import pytest
from solders.hash import Hash

from txflow.config import Commitment
from txflow.node.interface import NetworkError, SubmissionError
from txflow.node import pubsub
from txflow.node.pubsub import SignatureSubscription
from txflow.node.rpc import JsonRpcAdapter


def rpc_node(handler):
    """Wrap a ``method, params -> response body`` function as a transport."""
    requests = []

    def respond(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        requests.append(payload)
        body = handler(payload["method"], payload.get("params"))
        if isinstance(body, httpx.Response):
            return body
        body.setdefault("jsonrpc", "2.0")
        body.setdefault("id", payload["id"])
        return httpx.Response(200, json=body)

    return httpx.MockTransport(respond), requests


class FakeWebSocket:
    """Websocket stand-in replaying scripted frames; exceptions are raised in place."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.sent = []
        self.closed = False

    async def connect(self, url, **kwargs):
        return self

    async def send(self, message):
        self.sent.append(json.loads(message))

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._replay()

    async def _replay(self):
        for frame in self.frames:
            if isinstance(frame, Exception):
                raise frame
            yield frame


class TestJsonRpcAdapter:
    """Tests for request encoding and response parsing."""

    @pytest.mark.asyncio
    async def test_get_latest_blockhash(self, test_config):
        blockhash = Hash.new_unique()
        transport, requests = rpc_node(lambda method, params: {
            "result": {
                "context": {"slot": 321},
                "value": {"blockhash": str(blockhash), "lastValidBlockHeight": 456},
            }
        })

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            handle = await node.get_latest_blockhash(Commitment.FINALIZED)

        assert handle.blockhash == blockhash
        assert handle.last_valid_block_height == 456
        assert requests[0]["method"] == "getLatestBlockhash"
        assert requests[0]["params"] == [{"commitment": "finalized"}]

    @pytest.mark.asyncio
    async def test_malformed_blockhash_is_network_error(self, test_config):
        transport, _ = rpc_node(lambda method, params: {"result": {"value": {}}})

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            with pytest.raises(NetworkError, match="Malformed getLatestBlockhash"):
                await node.get_latest_blockhash()

    @pytest.mark.asyncio
    async def test_get_block_height(self, test_config):
        transport, _ = rpc_node(lambda method, params: {"result": 1234})

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            assert await node.get_block_height() == 1234

    @pytest.mark.asyncio
    async def test_send_transaction_encodes_base64(self, test_config):
        transport, requests = rpc_node(lambda method, params: {"result": "5igSig"})

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            signature = await node.send_transaction(b"\x01\x02\x03", max_retries=0)

        assert signature == "5igSig"
        encoded, opts = requests[0]["params"]
        assert base64.b64decode(encoded) == b"\x01\x02\x03"
        assert opts == {
            "encoding": "base64",
            "skipPreflight": False,
            "preflightCommitment": "confirmed",
            "maxRetries": 0,
        }

    @pytest.mark.asyncio
    async def test_send_transaction_rejection(self, test_config):
        """Test that a JSON-RPC error on submit is a submission error."""
        transport, _ = rpc_node(lambda method, params: {
            "error": {
                "code": -32002,
                "message": "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit.",
                "data": {"logs": ["Program log: nope"], "err": "AccountNotFound"},
            }
        })

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            with pytest.raises(SubmissionError) as exc_info:
                await node.send_transaction(b"\x00")

        assert exc_info.value.error_code == -32002
        assert exc_info.value.logs == ["Program log: nope"]

    @pytest.mark.asyncio
    async def test_signature_statuses(self, test_config):
        transport, requests = rpc_node(lambda method, params: {
            "result": {
                "context": {"slot": 99},
                "value": [
                    None,
                    {"slot": 90, "confirmations": 3, "err": None, "confirmationStatus": "confirmed"},
                    {"slot": 80, "confirmations": None, "err": None, "confirmationStatus": None},
                    {"slot": 85, "confirmations": 0, "err": {"InstructionError": [0, "InvalidArgument"]},
                     "confirmationStatus": "processed"},
                ],
            }
        })

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            statuses = await node.get_signature_statuses(["a", "b", "c", "d"])

        assert statuses[0] is None
        assert statuses[1].commitment == Commitment.CONFIRMED
        assert statuses[2].commitment == Commitment.FINALIZED
        assert statuses[3].failed is True
        assert requests[0]["params"] == [["a", "b", "c", "d"], {"searchTransactionHistory": True}]

    @pytest.mark.asyncio
    async def test_get_signature_status_single(self, test_config):
        transport, _ = rpc_node(lambda method, params: {
            "result": {"context": {"slot": 1}, "value": [None]}
        })

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            assert await node.get_signature_status("a") is None

    @pytest.mark.asyncio
    async def test_http_error_is_network_error(self, test_config):
        transport, _ = rpc_node(lambda method, params: httpx.Response(503, text="unavailable"))

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            with pytest.raises(NetworkError, match="503"):
                await node.get_block_height()

    @pytest.mark.asyncio
    async def test_non_json_body_is_network_error(self, test_config):
        transport, _ = rpc_node(lambda method, params: httpx.Response(200, text="<html>"))

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            with pytest.raises(NetworkError, match="Malformed"):
                await node.get_block_height()

    @pytest.mark.asyncio
    async def test_connection_failure_is_network_error(self, test_config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        node = JsonRpcAdapter(test_config, transport=httpx.MockTransport(refuse))
        try:
            with pytest.raises(NetworkError, match="getBlockHeight"):
                await node.get_block_height()
        finally:
            await node.disconnect()

    @pytest.mark.asyncio
    async def test_health(self, test_config):
        transport, _ = rpc_node(lambda method, params: {"result": "ok"})

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            assert await node.get_health() is True

    @pytest.mark.asyncio
    async def test_unhealthy_node(self, test_config):
        transport, _ = rpc_node(lambda method, params: {
            "error": {"code": -32005, "message": "Node is behind by 42 slots"}
        })

        async with JsonRpcAdapter(test_config, transport=transport) as node:
            assert await node.get_health() is False


class TestSignatureSubscription:
    """Tests for the pub/sub watcher."""

    @pytest.mark.asyncio
    async def test_refused_connection_is_network_error(self, test_config):
        test_config.ws_url = "ws://127.0.0.1:1"
        subscription = SignatureSubscription("sig", Commitment.CONFIRMED, test_config)

        with pytest.raises(NetworkError, match="Failed to subscribe"):
            await subscription.start()

        assert subscription.notified is False

    @pytest.mark.asyncio
    async def test_wait_times_out_without_notification(self, test_config):
        subscription = SignatureSubscription("sig", Commitment.CONFIRMED, test_config)

        assert await subscription.wait(0.01) is False

    @pytest.mark.asyncio
    async def test_non_object_frames_are_skipped(self, test_config, monkeypatch):
        socket = FakeWebSocket([
            "[1, 2]",
            json.dumps({"jsonrpc": "2.0", "id": 1, "result": 7}),
            json.dumps({
                "jsonrpc": "2.0",
                "method": "signatureNotification",
                "params": {"result": {"context": {"slot": 5}, "value": {"err": None}}, "subscription": 7},
            }),
        ])
        monkeypatch.setattr(pubsub.websockets, "connect", socket.connect)
        subscription = SignatureSubscription("sig", Commitment.CONFIRMED, test_config)

        await subscription.start()
        assert await subscription.wait(1.0) is True
        await subscription.close()

        assert subscription.notification == {"err": None}
        assert socket.sent[0]["method"] == "signatureSubscribe"
        assert socket.closed is True

    @pytest.mark.asyncio
    async def test_close_survives_receive_failure(self, test_config, monkeypatch):
        """A crashed receive loop is logged on close instead of raised."""
        socket = FakeWebSocket([RuntimeError("frame decoder exploded")])
        monkeypatch.setattr(pubsub.websockets, "connect", socket.connect)
        subscription = SignatureSubscription("sig", Commitment.CONFIRMED, test_config)

        await subscription.start()
        assert await subscription.wait(0.05) is False
        await subscription.close()

        assert subscription.notified is False
        assert socket.closed is True
