"""
Transaction Resolution

Turns raw packet bytes into what the analyses need:
- The decoded, sanitized transaction
- Its scheduling priority and requested compute units
- Its full account lock set, including lookup-table accounts

Lock resolution follows the runtime's rules. Static keys get their access
kind from the message header. Lookup-table keys come next, writable ones
first, then the read-only ones. Any account invoked as a program is demoted
to read-only.
"""

from dataclasses import dataclass
from typing import List, Optional

from .accounts import AccountLockSet
from .compute_budget import get_priority_and_requested_cus
from .errors import ResolutionError, SignatureError
from .lookup_tables import AddressLookupTableStore
from .transactions import SolanaTransaction


@dataclass
class DecodedTransaction:
    """A traced transaction with its scheduling attributes."""
    transaction: SolanaTransaction
    priority: int
    requested_compute_units: int
    locks: Optional[AccountLockSet] = None   # Set once resolved

    @property
    def signature(self) -> str:
        return self.transaction.signature


class TransactionResolver:
    """
    Decodes packets and resolves their account locks.

    Args:
        verify_signatures: reject transactions whose Ed25519 signatures do
            not verify. Off by default: traced packets already passed
            sigverify in the validator that recorded them.
    """

    def __init__(self, verify_signatures: bool = False):
        self.verify_signatures = verify_signatures

    def decode(self, raw: bytes) -> DecodedTransaction:
        """
        Raises:
            DecodeError: malformed wire bytes or compute budget data
            SignatureError: signature verification failed (strict mode only)
        """
        transaction = SolanaTransaction.from_bytes(raw)
        if self.verify_signatures and not transaction.verify_signatures():
            raise SignatureError(f"Invalid signature on transaction {transaction.signature[:16]}...")

        priority, requested_cus = get_priority_and_requested_cus(transaction.message)
        return DecodedTransaction(transaction, priority, requested_cus)

    def load_addresses(self, transaction: SolanaTransaction,
                       store: Optional[AddressLookupTableStore]) -> List[str]:
        """
        Resolve every lookup-table reference, writable addresses first.

        Raises:
            ResolutionError: if a table or index is missing from the store
        """
        lookups = transaction.message.address_table_lookups
        if not lookups:
            return []
        if store is None:
            raise ResolutionError("Transaction uses address lookup tables but no store is available")

        writable, readonly = [], []
        for lookup in lookups:
            for indexes, loaded in ((lookup.writable_indexes, writable),
                                    (lookup.readonly_indexes, readonly)):
                for index in indexes:
                    address = store.resolve(lookup.account_key, index)
                    if address is None:
                        raise ResolutionError(
                            f"Lookup table {lookup.account_key} has no address at index {index}"
                        )
                    loaded.append(address)
        return writable + readonly

    def resolve_locks(self, decoded: DecodedTransaction,
                      store: Optional[AddressLookupTableStore]) -> AccountLockSet:
        """
        Compute the account lock set for a decoded transaction.

        Raises:
            ResolutionError: if lookup-table accounts cannot be resolved
        """
        message = decoded.transaction.message
        loaded = self.load_addresses(decoded.transaction, store)
        num_loaded_writable = sum(len(lookup.writable_indexes) for lookup in message.address_table_lookups)

        account_keys = message.account_keys + loaded
        if len(set(account_keys)) != len(account_keys):
            raise ResolutionError(f"Account loaded twice in transaction {decoded.signature[:16]}...")

        program_ids = message.program_ids()
        num_static = len(message.account_keys)

        def is_writable(index: int, key: str) -> bool:
            if key in program_ids:
                return False
            if index < num_static:
                return message.is_static_writable_index(index)
            return index - num_static < num_loaded_writable

        return AccountLockSet.from_accesses(
            (key, is_writable(i, key)) for i, key in enumerate(account_keys)
        )

    def resolve(self, raw: bytes, store: Optional[AddressLookupTableStore]) -> DecodedTransaction:
        """Decode `raw` and attach its resolved locks."""
        decoded = self.decode(raw)
        decoded.locks = self.resolve_locks(decoded, store)
        return decoded
