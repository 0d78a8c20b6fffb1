"""
Address Lookup Table Store

Version 0 transactions can reference accounts indirectly, by index into an
on-chain address lookup table (ALT). The trace only records the raw
transaction, so resolving its full lock set needs a local copy of every
table it references.

The store is a plain JSON document mapping table keys to their address
lists. It is opened once per run, refreshed from an RPC node on demand,
and passed explicitly to whatever needs to resolve transactions.

Based on: https://solana.com/docs/advanced/lookup-tables
"""

import base64
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import requests

from .accounts import PUBKEY_BYTES, pubkey_from_bytes, pubkey_to_base58
from .errors import StoreError

logger = logging.getLogger(__name__)

LOOKUP_TABLE_META_SIZE = 56
MAX_KEYS_PER_REQUEST = 100

# table keys -> {table key: addresses}; tables that do not exist are omitted
LookupTableFetcher = Callable[[List[str]], Dict[str, List[str]]]


class UpdateMode(Enum):
    APPEND = "append"     # Only fetch tables the store does not know yet
    REPLACE = "replace"   # Refetch every requested table


def parse_lookup_table_data(data: bytes) -> List[str]:
    """
    Extract the addresses from raw lookup table account data.

    The account starts with a fixed-size metadata block (deactivation slot,
    last extended slot, authority); the addresses follow back to back.
    """
    if len(data) < LOOKUP_TABLE_META_SIZE:
        raise StoreError(f"Lookup table data too short: {len(data)} bytes")

    body = data[LOOKUP_TABLE_META_SIZE:]
    if len(body) % PUBKEY_BYTES:
        raise StoreError(f"Lookup table body is not a whole number of addresses: {len(body)} bytes")

    return [pubkey_from_bytes(body[i:i + PUBKEY_BYTES]) for i in range(0, len(body), PUBKEY_BYTES)]


class RpcLookupTableFetcher:
    """Fetch lookup tables from a Solana JSON-RPC endpoint."""

    def __init__(self, rpc_url: str, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.timeout = timeout

    def __call__(self, table_keys: List[str]) -> Dict[str, List[str]]:
        tables = {}
        for start in range(0, len(table_keys), MAX_KEYS_PER_REQUEST):
            chunk = table_keys[start:start + MAX_KEYS_PER_REQUEST]
            tables.update(self._fetch_chunk(chunk))
        return tables

    def _fetch_chunk(self, table_keys: List[str]) -> Dict[str, List[str]]:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getMultipleAccounts",
            "params": [
                [pubkey_to_base58(key) for key in table_keys],
                {"encoding": "base64"},
            ],
        }

        try:
            response = requests.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise StoreError(f"Failed to fetch lookup tables from {self.rpc_url}: {e}") from e
        except ValueError as e:
            raise StoreError(f"Invalid JSON from {self.rpc_url}: {e}") from e

        if "error" in body:
            raise StoreError(f"RPC error from {self.rpc_url}: {body['error']}")

        try:
            values = body["result"]["value"]
            tables = {}
            for key, value in zip(table_keys, values):
                if value is None:
                    logger.info("Lookup table %s does not exist", key)
                    continue
                encoded, _encoding = value["data"]
                tables[key] = parse_lookup_table_data(base64.b64decode(encoded))
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed getMultipleAccounts response: {e}") from e

        return tables


class AddressLookupTableStore:
    """
    Local copy of address lookup tables, persisted as JSON.
    """

    def __init__(self, path: Path, tables: Optional[Dict[str, List[str]]] = None,
                 fetcher: Optional[LookupTableFetcher] = None):
        self.path = Path(path)
        self._tables: Dict[str, List[str]] = dict(tables or {})
        self.fetcher = fetcher

    @classmethod
    def load_or_create(cls, path, fetcher: Optional[LookupTableFetcher] = None) -> 'AddressLookupTableStore':
        """
        Open the store at `path`, creating an empty one if it does not exist.

        Raises:
            StoreError: if the file exists but cannot be read or parsed
        """
        path = Path(path)
        if not path.exists():
            store = cls(path, fetcher=fetcher)
            store.save()
            logger.info("Created empty lookup table store at %s", path)
            return store

        try:
            with open(path, 'r') as f:
                document = json.load(f)
            tables = {key: list(addresses) for key, addresses in document["tables"].items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise StoreError(f"Failed to load lookup table store {path}: {e}") from e

        logger.info("Loaded %d lookup tables from %s", len(tables), path)
        return cls(path, tables, fetcher)

    def resolve(self, table_key: str, index: int) -> Optional[str]:
        """Address at `index` in table `table_key`, or None if unknown."""
        addresses = self._tables.get(table_key)
        if addresses is None or not 0 <= index < len(addresses):
            return None
        return addresses[index]

    def update(self, table_keys: Iterable[str], mode: UpdateMode = UpdateMode.APPEND) -> int:
        """
        Fetch tables and persist the store.

        Returns:
            Number of tables written into the store

        Raises:
            StoreError: if no fetcher is configured, fetching fails or
                the store cannot be written
        """
        table_keys = list(dict.fromkeys(table_keys))
        if mode is UpdateMode.APPEND:
            table_keys = [key for key in table_keys if key not in self._tables]

        if not table_keys:
            return 0
        if self.fetcher is None:
            raise StoreError("Lookup table store has no fetcher configured")

        fetched = self.fetcher(table_keys)
        self._tables.update(fetched)
        self.save()

        logger.info("Stored %d of %d requested lookup tables", len(fetched), len(table_keys))
        return len(fetched)

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump({"tables": self._tables}, f, indent=2, sort_keys=True)
        except OSError as e:
            raise StoreError(f"Failed to write lookup table store {self.path}: {e}") from e

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, table_key: str) -> bool:
        return table_key in self._tables
