"""
Base exception for the transaction client.

Concrete error kinds are defined beside the component that raises them.
"""


class TxFlowError(Exception):
    """Base class for every error the transaction workflow raises."""
    pass
