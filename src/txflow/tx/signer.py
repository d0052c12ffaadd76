"""
Transaction Signer - handles transaction signing.

Signs the compiled message with every keypair the transaction requires.
Ed25519 signatures are deterministic, but nothing downstream depends on
reproducing signature bytes; only on verifying them.
"""

from typing import Iterable, List

import structlog

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from txflow.core.transaction import SignedTransaction, Transaction, ValidationError
from txflow.exceptions import TxFlowError

logger = structlog.get_logger(__name__)


class MissingSignerError(TxFlowError):
    """Raised when a required signer has no matching keypair."""

    def __init__(self, missing: List[Pubkey]):
        self.missing = list(missing)
        keys = ", ".join(str(key) for key in self.missing)
        super().__init__(f"Missing keypair for required signer(s): {keys}")


class TransactionSigner:
    """
    Signs transactions with borrowed keypairs.

    Keypairs are only read for the duration of ``sign`` and never stored
    on the signer, so one signer may serve concurrent workflows.
    """

    def check_signers(self, transaction: Transaction, keypairs: Iterable[Keypair]) -> dict:
        """
        Match keypairs to the transaction's required signers without signing.

        Returns:
            Mapping of required public key to keypair

        Raises:
            ValidationError: If the transaction has no signer
            MissingSignerError: If a required signer has no keypair
        """
        required = transaction.required_signers()
        if not required:
            raise ValidationError("Transaction has no signer account references")

        by_key = {keypair.pubkey(): keypair for keypair in keypairs}
        missing = [key for key in required if key not in by_key]
        if missing:
            raise MissingSignerError(missing)
        return by_key

    def sign(self, transaction: Transaction, keypairs: Iterable[Keypair]) -> SignedTransaction:
        """
        Sign a transaction.

        Args:
            transaction: Transaction stamped with a freshness handle
            keypairs: Candidate keypairs; extras are ignored

        Returns:
            Signed transaction ready for submission

        Raises:
            ValidationError: If the transaction has no handle or no signer
            MissingSignerError: If a required signer has no keypair
        """
        by_key = self.check_signers(transaction, keypairs)
        if not transaction.has_freshness_handle:
            raise ValidationError("Transaction must have a freshness handle before signing")

        required = transaction.required_signers()

        message_bytes = transaction.message_bytes()
        for key in required:
            transaction.signatures[key] = by_key[key].sign_message(message_bytes)

        unused = [str(key) for key in by_key if key not in required]
        if unused:
            logger.debug("unused_keypairs_ignored", pubkeys=unused)

        signed = SignedTransaction.from_transaction(transaction)

        logger.debug(
            "transaction_signed",
            signature=signed.identifier,
            signers=[str(key) for key in required],
        )
        return signed

    def add_signature(self, transaction: Transaction, keypair: Keypair) -> Transaction:
        """
        Add one signature to a partially signed transaction.

        Useful when signers are held by different parties.
        """
        key = keypair.pubkey()
        if key not in transaction.required_signers():
            raise ValidationError(f"{key} is not a required signer")
        if not transaction.has_freshness_handle:
            raise ValidationError("Transaction must have a freshness handle before signing")

        transaction.signatures[key] = keypair.sign_message(transaction.message_bytes())
        return transaction
