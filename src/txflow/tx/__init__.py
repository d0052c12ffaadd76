"""
Transaction module.

Handles freshness handles, transaction construction, signing, and submission.
"""

from txflow.tx.blockhash import BlockhashProvider
from txflow.tx.builder import TransactionBuilder, ValidationError
from txflow.tx.signer import MissingSignerError, TransactionSigner
from txflow.tx.submitter import SubmissionClient, SubmissionReceipt

__all__ = [
    "BlockhashProvider",
    "TransactionBuilder",
    "ValidationError",
    "MissingSignerError",
    "TransactionSigner",
    "SubmissionClient",
    "SubmissionReceipt",
]
