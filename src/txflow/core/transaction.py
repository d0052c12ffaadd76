"""
Transaction model.

A transaction is a list of program instructions stamped with a recent
blockhash (the freshness handle) and accumulating signatures from the
keypairs that the instructions require.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction as SoldersInstruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction as WireTransaction

from txflow.exceptions import TxFlowError


class ValidationError(TxFlowError):
    """Raised when a transaction is built or used in an invalid way."""
    pass


@dataclass(frozen=True)
class AccountReference:
    """
    A typed reference to an account an instruction touches.

    Identity is the public key: two references to the same key compare
    equal regardless of their flags.
    """
    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountReference):
            return NotImplemented
        return self.pubkey == other.pubkey

    def __hash__(self) -> int:
        return hash(self.pubkey)

    def to_account_meta(self) -> AccountMeta:
        return AccountMeta(self.pubkey, self.is_signer, self.is_writable)


@dataclass(frozen=True)
class Instruction:
    """A single call into an on-chain program."""
    program_id: Pubkey
    accounts: tuple = ()
    data: bytes = b""

    @property
    def signer_keys(self) -> List[Pubkey]:
        return [ref.pubkey for ref in self.accounts if ref.is_signer]

    def to_solders(self) -> SoldersInstruction:
        return SoldersInstruction(
            self.program_id,
            bytes(self.data),
            [ref.to_account_meta() for ref in self.accounts],
        )


@dataclass(frozen=True)
class FreshnessHandle:
    """
    A recent blockhash and the last block height at which it is accepted.

    The blockhash is opaque; it is only ever copied into the message.
    """
    blockhash: Hash
    last_valid_block_height: int


@dataclass
class Transaction:
    """
    Mutable transaction under construction.

    Attributes:
        instructions: Ordered instructions; executed in this order
        recent_blockhash: Freshness handle, unset until stamped
        last_valid_block_height: Expiry height of the freshness handle
        fee_payer: Account paying fees (defaults to the first signer)
        signatures: Signatures attached so far, keyed by public key
    """

    instructions: List[Instruction] = field(default_factory=list)
    recent_blockhash: Optional[Hash] = None
    last_valid_block_height: Optional[int] = None
    fee_payer: Optional[Pubkey] = None
    signatures: Dict[Pubkey, Signature] = field(default_factory=dict)

    @property
    def has_freshness_handle(self) -> bool:
        return self.recent_blockhash is not None and self.last_valid_block_height is not None

    def stamp(self, handle: FreshnessHandle) -> None:
        """Assign a freshness handle, discarding signatures made over an older one."""
        if self.signatures and handle.blockhash != self.recent_blockhash:
            self.signatures.clear()
        self.recent_blockhash = handle.blockhash
        self.last_valid_block_height = handle.last_valid_block_height

    def add_instruction(self, instruction: Instruction) -> None:
        if self.signatures:
            raise ValidationError("Cannot add instructions to a signed transaction")
        self.instructions.append(instruction)

    @property
    def payer(self) -> Optional[Pubkey]:
        """The explicit fee payer, or the first signer across all instructions."""
        if self.fee_payer is not None:
            return self.fee_payer
        for instruction in self.instructions:
            signers = instruction.signer_keys
            if signers:
                return signers[0]
        return None

    def required_signers(self) -> List[Pubkey]:
        """Every key that must sign, fee payer first, without duplicates."""
        keys: List[Pubkey] = []
        payer = self.payer
        if payer is not None:
            keys.append(payer)
        for instruction in self.instructions:
            for key in instruction.signer_keys:
                if key not in keys:
                    keys.append(key)
        return keys

    def compile_message(self) -> Message:
        """
        Compile the canonical message that signatures are made over.

        Raises:
            ValidationError: If the transaction has no instructions, no
                signer, or no freshness handle yet
        """
        if not self.instructions:
            raise ValidationError("Transaction has no instructions")
        if self.recent_blockhash is None:
            raise ValidationError("Transaction has no recent blockhash")
        payer = self.payer
        if payer is None:
            raise ValidationError("Transaction has no signer to pay fees")

        return Message.new_with_blockhash(
            [instruction.to_solders() for instruction in self.instructions],
            payer,
            self.recent_blockhash,
        )

    def message_bytes(self) -> bytes:
        return bytes(self.compile_message())

    @property
    def is_fully_signed(self) -> bool:
        required = self.required_signers()
        return bool(required) and all(key in self.signatures for key in required)


@dataclass(frozen=True)
class SignedTransaction:
    """
    A fully signed transaction, frozen for submission.

    The identifier is the fee payer's signature, so it is known before the
    transaction ever reaches the node.
    """
    message: Message
    signatures: tuple
    last_valid_block_height: int

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "SignedTransaction":
        if not transaction.has_freshness_handle:
            raise ValidationError("Transaction has no freshness handle")
        if not transaction.is_fully_signed:
            raise ValidationError("Transaction is missing required signatures")

        message = transaction.compile_message()
        num_signers = message.header.num_required_signatures
        ordered = tuple(
            transaction.signatures[key]
            for key in message.account_keys[:num_signers]
        )
        return cls(
            message=message,
            signatures=ordered,
            last_valid_block_height=transaction.last_valid_block_height,
        )

    @property
    def signature(self) -> Signature:
        return self.signatures[0]

    @property
    def identifier(self) -> str:
        """Base58 transaction identifier used for status lookups."""
        return str(self.signature)

    @property
    def recent_blockhash(self) -> Hash:
        return self.message.recent_blockhash

    @property
    def signer_keys(self) -> Sequence[Pubkey]:
        return self.message.account_keys[: len(self.signatures)]

    def to_wire(self) -> WireTransaction:
        return WireTransaction.populate(self.message, list(self.signatures))

    def serialize(self) -> bytes:
        return bytes(self.to_wire())

    def verify(self) -> bool:
        """Check every attached signature against the message bytes."""
        message_bytes = bytes(self.message)
        return all(
            signature.verify(key, message_bytes)
            for key, signature in zip(self.signer_keys, self.signatures)
        )
