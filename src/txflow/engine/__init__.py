"""
Confirmation engine.

Resolves submitted transactions to confirmed, failed, or expired outcomes.
"""

from txflow.engine.confirmation import ConfirmationTimeoutError, ConfirmationWaiter

__all__ = [
    "ConfirmationTimeoutError",
    "ConfirmationWaiter",
]
