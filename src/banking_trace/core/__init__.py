"""
Banking Trace Core Components

The transaction model, its wire codec, compute budget parsing, lookup-table
resolution, errors and run configuration.
"""

from .accounts import AccountMeta, AccountLockSet, parse_pubkey, pubkey_to_base58
from .transactions import (
    SolanaTransaction,
    TransactionMessage,
    MessageHeader,
    MessageAddressTableLookup,
    CompiledInstruction,
    Instruction,
    TransactionBuilder,
    sign_transaction,
    generate_keypair,
)
from .compute_budget import COMPUTE_BUDGET_PROGRAM_ID, get_priority_and_requested_cus
from .lookup_tables import AddressLookupTableStore, RpcLookupTableFetcher, UpdateMode
from .resolver import DecodedTransaction, TransactionResolver
from .config import TraceToolConfig
from .errors import (
    BankingTraceError,
    DecodeError,
    TraceFormatError,
    SignatureError,
    ResolutionError,
    StoreError,
    GraphOrderError,
)

__all__ = [
    'AccountMeta', 'AccountLockSet', 'parse_pubkey', 'pubkey_to_base58',
    'SolanaTransaction', 'TransactionMessage', 'MessageHeader',
    'MessageAddressTableLookup', 'CompiledInstruction', 'Instruction',
    'TransactionBuilder', 'sign_transaction', 'generate_keypair',
    'COMPUTE_BUDGET_PROGRAM_ID', 'get_priority_and_requested_cus',
    'AddressLookupTableStore', 'RpcLookupTableFetcher', 'UpdateMode',
    'DecodedTransaction', 'TransactionResolver',
    'TraceToolConfig',
    'BankingTraceError', 'DecodeError', 'TraceFormatError', 'SignatureError',
    'ResolutionError', 'StoreError', 'GraphOrderError',
]
