"""
Transaction Builder - assembles program invocation transactions.

Pure construction: no node access happens here.
"""

from typing import Iterable, Optional, Union

import structlog

from solders.pubkey import Pubkey

from txflow.core.transaction import (
    AccountReference,
    FreshnessHandle,
    Instruction,
    Transaction,
    ValidationError,
)

logger = structlog.get_logger(__name__)

PubkeyLike = Union[Pubkey, bytes, str]


def to_pubkey(value: PubkeyLike) -> Pubkey:
    """
    Coerce a raw 32-byte identifier or base58 string into a Pubkey.

    Raises:
        ValidationError: If the value is not a valid public key
    """
    if isinstance(value, Pubkey):
        return value
    try:
        if isinstance(value, (bytes, bytearray)):
            return Pubkey(bytes(value))
        if isinstance(value, str):
            return Pubkey.from_string(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid public key: {value!r}") from e
    raise ValidationError(f"Unsupported public key type: {type(value).__name__}")


class TransactionBuilder:
    """
    Builds single-instruction transactions against a target program.

    Usage:
        ```python
        builder = TransactionBuilder()
        tx = builder.build(
            program_id,
            [AccountReference(signer.pubkey(), is_signer=True, is_writable=True)],
            b"",
            handle,
        )
        ```
    """

    def __init__(self, require_signer: bool = True):
        """
        Initialize the builder.

        Args:
            require_signer: Reject transactions that nobody would sign
        """
        self.require_signer = require_signer

    def build_instruction(
        self,
        program_id: PubkeyLike,
        account_references: Iterable[AccountReference],
        instruction_data: bytes = b"",
    ) -> Instruction:
        """Create an instruction from typed account references."""
        accounts = tuple(account_references)
        for ref in accounts:
            if not isinstance(ref, AccountReference):
                raise ValidationError(f"Expected AccountReference, got {type(ref).__name__}")

        return Instruction(
            program_id=to_pubkey(program_id),
            accounts=accounts,
            data=bytes(instruction_data or b""),
        )

    def build(
        self,
        program_id: PubkeyLike,
        account_references: Iterable[AccountReference],
        instruction_data: bytes = b"",
        handle: Optional[FreshnessHandle] = None,
        fee_payer: Optional[PubkeyLike] = None,
    ) -> Transaction:
        """
        Build a transaction invoking ``program_id`` once.

        Args:
            program_id: Target program identifier
            account_references: Accounts the instruction reads or writes
            instruction_data: Opaque instruction payload
            handle: Freshness handle to stamp (may be assigned later via ``stamp``)
            fee_payer: Explicit fee payer; defaults to the first signer

        Returns:
            Unsigned transaction

        Raises:
            ValidationError: If the inputs cannot form a signable transaction
        """
        instruction = self.build_instruction(program_id, account_references, instruction_data)

        if self.require_signer and fee_payer is None and not instruction.signer_keys:
            raise ValidationError(
                "At least one signer account reference is required"
            )

        tx = Transaction(fee_payer=to_pubkey(fee_payer) if fee_payer is not None else None)
        tx.add_instruction(instruction)

        if handle is not None:
            self.stamp(tx, handle)

        logger.debug(
            "transaction_built",
            program_id=str(instruction.program_id),
            accounts=len(instruction.accounts),
            data_len=len(instruction.data),
            stamped=tx.has_freshness_handle,
        )
        return tx

    def stamp(self, transaction: Transaction, handle: FreshnessHandle) -> Transaction:
        """Assign a freshness handle to ``transaction``."""
        if handle.last_valid_block_height < 0:
            raise ValidationError("Freshness handle has a negative expiry height")
        transaction.stamp(handle)
        return transaction
