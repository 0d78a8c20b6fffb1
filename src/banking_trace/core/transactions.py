"""
Solana Transaction and Instruction Model

A traced packet carries one transaction in wire format:
- Transactions contain multiple instructions that execute atomically
- All account access is declared upfront, enabling parallel execution
- Version 0 messages may pull extra accounts in through address lookup tables
- Signatures are Ed25519 over the serialized message

Wire layout (all integers little-endian):

    transaction := u8 num_signatures, signature[64] * num_signatures, message
    message     := [u8 0x80 | version], header[3], u8 num_keys, key[32] * num_keys,
                   blockhash[32], u8 num_instructions, instruction * num_instructions,
                   [u8 num_lookups, lookup * num_lookups]          (v0 only)
    instruction := u8 program_id_index, u8 num_accounts, u8 index * num_accounts,
                   u16 data_len, data
    lookup      := key[32], u8 n, u8 index * n, u8 m, u8 index * m

Based on: https://solana.com/docs/core/transactions
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Set, Tuple

from ecdsa import SigningKey, VerifyingKey, Ed25519, BadSignatureError, MalformedPointError

from .accounts import AccountMeta, PUBKEY_BYTES, pubkey_from_bytes, pubkey_to_bytes
from .errors import DecodeError

SIGNATURE_BYTES = 64
BLOCKHASH_BYTES = 32
VERSION_PREFIX_MASK = 0x80


class _Reader:
    """Cursor over a byte string that raises DecodeError on short reads."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise DecodeError(f"Unexpected end of data at offset {self.offset} (wanted {size} bytes)")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self.take(2), 'little')

    def peek_u8(self) -> int:
        if self.offset >= len(self.data):
            raise DecodeError("Unexpected end of data")
        return self.data[self.offset]

    def remaining(self) -> int:
        return len(self.data) - self.offset


@dataclass
class MessageHeader:
    """
    Transaction message header with account access metadata.

    The static account keys are ordered: writable signers, read-only signers,
    writable non-signers, read-only non-signers. These three counts are
    enough to recover each key's role.
    """
    num_required_signatures: int         # All signers, writable or not
    num_readonly_signed_accounts: int    # Trailing read-only signers
    num_readonly_unsigned_accounts: int  # Trailing read-only non-signers


@dataclass
class CompiledInstruction:
    """
    Instruction compiled to reference accounts by index.

    Indexes point into the static keys followed by any keys loaded from
    address lookup tables.
    """
    program_id_index: int
    accounts: List[int]
    data: bytes

    def __str__(self) -> str:
        return f"Instruction(program_id_index={self.program_id_index}, accounts={self.accounts}, data_len={len(self.data)})"


@dataclass
class MessageAddressTableLookup:
    """A reference to accounts stored in an on-chain address lookup table."""
    account_key: str                 # The lookup table account
    writable_indexes: List[int]
    readonly_indexes: List[int]


@dataclass
class TransactionMessage:
    """
    The signed part of a transaction.

    `version` is None for legacy messages and 0 for v0 messages, the only
    versioned format that exists.
    """
    header: MessageHeader
    account_keys: List[str]          # Static account keys (hex)
    recent_blockhash: str            # hex
    instructions: List[CompiledInstruction]
    address_table_lookups: List[MessageAddressTableLookup] = field(default_factory=list)
    version: Optional[int] = None

    def serialize(self) -> bytes:
        """Serialize the message for signing and transmission."""
        parts = []

        if self.version is not None:
            parts.append(bytes([VERSION_PREFIX_MASK | self.version]))

        parts.append(bytes([
            self.header.num_required_signatures,
            self.header.num_readonly_signed_accounts,
            self.header.num_readonly_unsigned_accounts,
        ]))

        parts.append(len(self.account_keys).to_bytes(1, 'little'))
        parts.extend(pubkey_to_bytes(key) for key in self.account_keys)

        parts.append(bytes.fromhex(self.recent_blockhash))

        parts.append(len(self.instructions).to_bytes(1, 'little'))
        for instruction in self.instructions:
            parts.append(instruction.program_id_index.to_bytes(1, 'little'))
            parts.append(len(instruction.accounts).to_bytes(1, 'little'))
            parts.append(bytes(instruction.accounts))
            parts.append(len(instruction.data).to_bytes(2, 'little'))
            parts.append(instruction.data)

        if self.version is not None:
            parts.append(len(self.address_table_lookups).to_bytes(1, 'little'))
            for lookup in self.address_table_lookups:
                parts.append(pubkey_to_bytes(lookup.account_key))
                parts.append(len(lookup.writable_indexes).to_bytes(1, 'little'))
                parts.append(bytes(lookup.writable_indexes))
                parts.append(len(lookup.readonly_indexes).to_bytes(1, 'little'))
                parts.append(bytes(lookup.readonly_indexes))

        return b''.join(parts)

    @classmethod
    def _read(cls, reader: _Reader) -> 'TransactionMessage':
        version = None
        if reader.peek_u8() & VERSION_PREFIX_MASK:
            version = reader.u8() & 0x7F
            if version != 0:
                raise DecodeError(f"Unsupported message version {version}")

        header = MessageHeader(reader.u8(), reader.u8(), reader.u8())

        num_keys = reader.u8()
        account_keys = [pubkey_from_bytes(reader.take(PUBKEY_BYTES)) for _ in range(num_keys)]
        recent_blockhash = reader.take(BLOCKHASH_BYTES).hex()

        instructions = []
        for _ in range(reader.u8()):
            program_id_index = reader.u8()
            accounts = list(reader.take(reader.u8()))
            data = reader.take(reader.u16())
            instructions.append(CompiledInstruction(program_id_index, accounts, data))

        lookups = []
        if version is not None:
            for _ in range(reader.u8()):
                key = pubkey_from_bytes(reader.take(PUBKEY_BYTES))
                writable = list(reader.take(reader.u8()))
                readonly = list(reader.take(reader.u8()))
                lookups.append(MessageAddressTableLookup(key, writable, readonly))

        return cls(header, account_keys, recent_blockhash, instructions, lookups, version)

    @classmethod
    def deserialize(cls, data: bytes) -> 'TransactionMessage':
        reader = _Reader(data)
        message = cls._read(reader)
        if reader.remaining():
            raise DecodeError(f"{reader.remaining()} trailing bytes after message")
        return message

    def num_loaded_accounts(self) -> int:
        return sum(len(lookup.writable_indexes) + len(lookup.readonly_indexes)
                   for lookup in self.address_table_lookups)

    def sanitize(self) -> None:
        """
        Reject structurally invalid messages.

        Raises:
            DecodeError: describing the first violated rule
        """
        header = self.header
        num_keys = len(self.account_keys)

        if header.num_required_signatures > num_keys:
            raise DecodeError("More required signatures than account keys")
        if header.num_readonly_signed_accounts >= header.num_required_signatures:
            raise DecodeError("Fee payer must be a writable signer")
        if header.num_readonly_unsigned_accounts > num_keys - header.num_required_signatures:
            raise DecodeError("More read-only unsigned accounts than unsigned keys")
        if len(set(self.account_keys)) != num_keys:
            raise DecodeError("Duplicate static account keys")

        total_keys = num_keys + self.num_loaded_accounts()
        if total_keys > 256:
            raise DecodeError("Too many account keys")

        for instruction in self.instructions:
            # Programs can only come from static keys, and never the fee payer
            if not 0 < instruction.program_id_index < num_keys:
                raise DecodeError(f"Invalid program id index {instruction.program_id_index}")
            for index in instruction.accounts:
                if index >= total_keys:
                    raise DecodeError(f"Account index {index} out of range")

        for lookup in self.address_table_lookups:
            if not lookup.writable_indexes and not lookup.readonly_indexes:
                raise DecodeError("Empty address table lookup")

    def is_static_writable_index(self, index: int) -> bool:
        """Whether the static key at `index` is requested writable by the header."""
        header = self.header
        num_signed = header.num_required_signatures
        if index < num_signed:
            return index < num_signed - header.num_readonly_signed_accounts

        num_unsigned = len(self.account_keys) - num_signed
        return index - num_signed < num_unsigned - header.num_readonly_unsigned_accounts

    def program_ids(self) -> Set[str]:
        return {self.account_keys[ix.program_id_index] for ix in self.instructions}

    def program_instructions_iter(self) -> Iterator[Tuple[str, CompiledInstruction]]:
        """Yield (program id, instruction) pairs in instruction order."""
        for instruction in self.instructions:
            yield self.account_keys[instruction.program_id_index], instruction


@dataclass
class SolanaTransaction:
    """
    Complete Solana transaction with signatures and message.
    """
    signatures: List[str]          # Ed25519 signatures in hex
    message: TransactionMessage

    @property
    def signature(self) -> str:
        """The first signature, which identifies the transaction."""
        if not self.signatures:
            raise ValueError("Transaction has no signatures")
        return self.signatures[0]

    def serialize(self) -> bytes:
        parts = [len(self.signatures).to_bytes(1, 'little')]
        parts.extend(bytes.fromhex(signature) for signature in self.signatures)
        parts.append(self.message.serialize())
        return b''.join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'SolanaTransaction':
        """
        Decode and sanitize a transaction from wire bytes.

        Raises:
            DecodeError: if the bytes are malformed or fail sanitization
        """
        reader = _Reader(data)
        num_signatures = reader.u8()
        signatures = [reader.take(SIGNATURE_BYTES).hex() for _ in range(num_signatures)]
        message = TransactionMessage._read(reader)
        if reader.remaining():
            raise DecodeError(f"{reader.remaining()} trailing bytes after transaction")

        if num_signatures == 0:
            raise DecodeError("Transaction has no signatures")
        if num_signatures != message.header.num_required_signatures:
            raise DecodeError(
                f"Expected {message.header.num_required_signatures} signatures, got {num_signatures}"
            )
        message.sanitize()

        return cls(signatures=signatures, message=message)

    def verify_signatures(self) -> bool:
        """
        Verify all transaction signatures.

        Each required signer must provide a valid Ed25519 signature
        over the serialized message.
        """
        message_data = self.message.serialize()

        required_sigs = self.message.header.num_required_signatures
        if len(self.signatures) != required_sigs:
            return False

        for signer_pubkey, signature in zip(self.message.account_keys, self.signatures):
            try:
                vk = VerifyingKey.from_string(pubkey_to_bytes(signer_pubkey), curve=Ed25519)
                vk.verify(bytes.fromhex(signature), message_data)
            except (BadSignatureError, MalformedPointError):
                return False

        return True

    def get_fee_payer(self) -> str:
        """Get the fee payer (always the first signer)."""
        if not self.message.account_keys:
            raise ValueError("Transaction has no accounts")
        return self.message.account_keys[0]

    def get_writable_accounts(self) -> Set[str]:
        """Static accounts the header marks writable."""
        return {
            key for i, key in enumerate(self.message.account_keys)
            if self.message.is_static_writable_index(i)
        }

    def get_readonly_accounts(self) -> Set[str]:
        """Static accounts this transaction only reads from."""
        return set(self.message.account_keys) - self.get_writable_accounts()


@dataclass
class Instruction:
    """
    High-level instruction before compilation to indices.

    This is the developer-friendly format for building transactions.
    It gets compiled down to CompiledInstruction for efficiency.
    """
    program_id: str
    accounts: List[AccountMeta]
    data: bytes

    def __str__(self) -> str:
        return f"Instruction({self.program_id[:8]}..., {len(self.accounts)} accounts, {len(self.data)} bytes)"


class TransactionBuilder:
    """
    Builder for constructing Solana transactions.

    This handles ordering accounts correctly and compiling instructions
    to their binary format. Address table lookups are attached verbatim
    and turn the message into a v0 message.
    """

    def __init__(self, fee_payer: str, recent_blockhash: str):
        self.fee_payer = fee_payer
        self.recent_blockhash = recent_blockhash
        self.instructions: List[Instruction] = []
        self.address_table_lookups: List[MessageAddressTableLookup] = []

    def add_instruction(self, instruction: Instruction) -> 'TransactionBuilder':
        """Add an instruction to the transaction (fluent interface)."""
        self.instructions.append(instruction)
        return self

    def add_instructions(self, instructions: List[Instruction]) -> 'TransactionBuilder':
        self.instructions.extend(instructions)
        return self

    def add_address_table_lookup(self, table_key: str, writable_indexes: List[int] = (),
                                 readonly_indexes: List[int] = ()) -> 'TransactionBuilder':
        self.address_table_lookups.append(
            MessageAddressTableLookup(table_key, list(writable_indexes), list(readonly_indexes))
        )
        return self

    def build(self) -> TransactionMessage:
        """
        Build the final transaction message.

        Accounts are ordered the way the runtime expects them:
        1. Fee payer, then other writable signers
        2. Read-only signers
        3. Writable non-signers
        4. Read-only non-signers (programs land here)
        """
        all_accounts = {self.fee_payer}
        signer_accounts = {self.fee_payer}
        writable_accounts = {self.fee_payer}

        for instruction in self.instructions:
            all_accounts.add(instruction.program_id)
            for account in instruction.accounts:
                all_accounts.add(account.pubkey)
                if account.is_signer:
                    signer_accounts.add(account.pubkey)
                if account.is_writable:
                    writable_accounts.add(account.pubkey)

        writable_signers = sorted((signer_accounts & writable_accounts) - {self.fee_payer})
        readonly_signers = sorted(signer_accounts - writable_accounts)
        writable_non_signers = sorted(writable_accounts - signer_accounts)
        readonly_non_signers = sorted(all_accounts - signer_accounts - writable_accounts)

        account_keys = ([self.fee_payer] + writable_signers + readonly_signers
                        + writable_non_signers + readonly_non_signers)
        account_index = {key: i for i, key in enumerate(account_keys)}

        compiled_instructions = []
        for instruction in self.instructions:
            compiled_instructions.append(CompiledInstruction(
                program_id_index=account_index[instruction.program_id],
                accounts=[account_index[acc.pubkey] for acc in instruction.accounts],
                data=instruction.data,
            ))

        header = MessageHeader(
            num_required_signatures=1 + len(writable_signers) + len(readonly_signers),
            num_readonly_signed_accounts=len(readonly_signers),
            num_readonly_unsigned_accounts=len(readonly_non_signers),
        )

        return TransactionMessage(
            header=header,
            account_keys=account_keys,
            recent_blockhash=self.recent_blockhash,
            instructions=compiled_instructions,
            address_table_lookups=list(self.address_table_lookups),
            version=0 if self.address_table_lookups else None,
        )


def sign_transaction(message: TransactionMessage, signers: List[SigningKey]) -> SolanaTransaction:
    """
    Sign a transaction message with the provided private keys.

    Args:
        message: Transaction message to sign
        signers: Private keys in the same order as the message's signer keys

    Returns:
        Fully signed transaction ready for submission
    """
    message_data = message.serialize()
    signatures = [signer.sign(message_data).hex() for signer in signers]
    return SolanaTransaction(signatures=signatures, message=message)


def generate_keypair() -> Tuple[SigningKey, str]:
    """
    Generate a new Ed25519 keypair.

    Returns:
        Tuple of (private_key, public_key_hex)
    """
    private_key = SigningKey.generate(curve=Ed25519)
    public_key_hex = private_key.verifying_key.to_string().hex()
    return private_key, public_key_hex
