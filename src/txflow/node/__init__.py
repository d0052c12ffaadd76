"""
Node Integration Layer.

Provides abstracted access to the ledger node's RPC and pub/sub endpoints.
"""

from txflow.node.interface import (
    NodeInterface,
    NetworkError,
    SignatureStatus,
    SubmissionError,
)
from txflow.node.rpc import JsonRpcAdapter
from txflow.node.pubsub import SignatureSubscription

__all__ = [
    "NodeInterface",
    "NetworkError",
    "SignatureStatus",
    "SubmissionError",
    "JsonRpcAdapter",
    "SignatureSubscription",
]
