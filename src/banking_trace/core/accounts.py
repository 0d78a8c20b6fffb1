"""
Account Keys and Lock Sets

Every transaction declares, upfront, which accounts it will touch and how:
- Writable accounts are locked exclusively
- Read-only accounts may be shared with other readers

This declaration is what lets a scheduler run non-conflicting transactions
in parallel, and it is the only thing the conflict graph needs to know about
a transaction.

Account keys are 32-byte Ed25519 public keys, carried around as lower-case
hex strings.

Based on: https://solana.com/docs/core/accounts
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

import base58

PUBKEY_BYTES = 32


def pubkey_from_bytes(raw: bytes) -> str:
    """Render a 32-byte public key as hex."""
    if len(raw) != PUBKEY_BYTES:
        raise ValueError(f"Public key must be {PUBKEY_BYTES} bytes, got {len(raw)}")
    return raw.hex()


def pubkey_to_bytes(pubkey: str) -> bytes:
    """Inverse of pubkey_from_bytes."""
    raw = bytes.fromhex(pubkey)
    if len(raw) != PUBKEY_BYTES:
        raise ValueError(f"Public key must be {PUBKEY_BYTES} bytes, got {len(raw)}")
    return raw


def pubkey_to_base58(pubkey: str) -> str:
    """Base58 form of a key, as Solana RPC nodes and explorers expect it."""
    return base58.b58encode(pubkey_to_bytes(pubkey)).decode('ascii')


def parse_pubkey(text: str) -> str:
    """
    Parse a user-supplied public key.

    Accepts either the 64-character hex form used throughout this tool or
    the base58 form used by wallets and explorers.
    """
    text = text.strip()
    if len(text) == PUBKEY_BYTES * 2:
        try:
            return pubkey_to_bytes(text.lower()).hex()
        except ValueError:
            pass  # Might still be base58 that happens to be 64 chars long

    try:
        raw = base58.b58decode(text)
    except ValueError as e:
        raise ValueError(f"Invalid public key {text!r}: {e}") from e
    return pubkey_from_bytes(raw)


@dataclass
class AccountMeta:
    """
    Account metadata for instruction building.

    This tells the runtime how an instruction wants to access each account.
    Declaring access patterns upfront is what enables parallel execution.
    """
    pubkey: str          # Account public key (hex)
    is_signer: bool      # Must sign transaction
    is_writable: bool    # Can be modified

    def __str__(self) -> str:
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{self.pubkey[:8]}...{flag_str}"


def _unique(keys: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(keys))


@dataclass(frozen=True)
class AccountLockSet:
    """
    The accounts a transaction locks, split by access kind.

    Both sides keep their first-seen order and hold no duplicates. A write
    lock subsumes a read lock on the same account, so any account listed
    as writable is removed from the read-only side.
    """
    writable: Tuple[str, ...] = ()
    readonly: Tuple[str, ...] = ()

    def __post_init__(self):
        writable = _unique(self.writable)
        write_set = set(writable)
        readonly = _unique(key for key in self.readonly if key not in write_set)
        object.__setattr__(self, 'writable', writable)
        object.__setattr__(self, 'readonly', readonly)

    @classmethod
    def from_accesses(cls, accesses: Iterable[Tuple[str, bool]]) -> 'AccountLockSet':
        """Build from (account, is_writable) pairs."""
        writable, readonly = [], []
        for account, is_writable in accesses:
            (writable if is_writable else readonly).append(account)
        return cls(tuple(writable), tuple(readonly))

    def accesses(self) -> Iterable[Tuple[str, bool]]:
        """Yield (account, is_writable), writes first."""
        for account in self.writable:
            yield account, True
        for account in self.readonly:
            yield account, False

    def all_accounts(self) -> Tuple[str, ...]:
        return self.writable + self.readonly

    def conflicts_with(self, other: 'AccountLockSet') -> bool:
        """True if the two lock sets cannot be held at the same time."""
        mine = set(self.writable)
        theirs = set(other.writable)
        if mine & (theirs | set(other.readonly)):
            return True
        return bool(theirs & set(self.readonly))

    def __len__(self) -> int:
        return len(self.writable) + len(self.readonly)

    def __contains__(self, account: str) -> bool:
        return account in self.writable or account in self.readonly
