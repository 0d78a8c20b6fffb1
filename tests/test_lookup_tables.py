"""
test_lookup_tables.py

Tests for the lookup-table store and its RPC fetcher. No network access:
requests.post is replaced with a fake.
"""

import base64
import json

import pytest
import requests

from banking_trace.core.accounts import pubkey_to_base58, pubkey_to_bytes
from banking_trace.core.errors import StoreError
from banking_trace.core.lookup_tables import (
    LOOKUP_TABLE_META_SIZE,
    AddressLookupTableStore,
    RpcLookupTableFetcher,
    UpdateMode,
    parse_lookup_table_data,
)

from conftest import MemoryFetcher, key


def table_account_data(addresses):
    return bytes(LOOKUP_TABLE_META_SIZE) + b"".join(pubkey_to_bytes(a) for a in addresses)


class FakeResponse:

    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.body


def rpc_reply(values):
    return FakeResponse({"jsonrpc": "2.0", "id": 1, "result": {"context": {"slot": 1}, "value": values}})


def account_value(addresses):
    encoded = base64.b64encode(table_account_data(addresses)).decode("ascii")
    return {"data": [encoded, "base64"], "executable": False, "lamports": 1, "owner": "x"}


class TestParseTableData:

    def test_addresses_follow_metadata(self):
        assert parse_lookup_table_data(table_account_data([key(1), key(2)])) == [key(1), key(2)]

    def test_empty_table(self):
        assert parse_lookup_table_data(bytes(LOOKUP_TABLE_META_SIZE)) == []

    @pytest.mark.parametrize("size", [10, LOOKUP_TABLE_META_SIZE + 5])
    def test_bad_sizes(self, size):
        with pytest.raises(StoreError):
            parse_lookup_table_data(bytes(size))


class TestStore:

    def test_load_or_create_creates_empty_file(self, tmp_path):
        path = tmp_path / "nested" / "alt.json"
        store = AddressLookupTableStore.load_or_create(path)
        assert len(store) == 0
        assert json.loads(path.read_text()) == {"tables": {}}

    def test_persisted_tables_reload(self, tmp_path):
        path = tmp_path / "alt.json"
        fetcher = MemoryFetcher({key(9): [key(1), key(2)]})
        store = AddressLookupTableStore.load_or_create(path, fetcher)
        assert store.update([key(9)]) == 1

        reloaded = AddressLookupTableStore.load_or_create(path)
        assert key(9) in reloaded
        assert reloaded.resolve(key(9), 1) == key(2)
        assert reloaded.resolve(key(9), 2) is None
        assert reloaded.resolve(key(8), 0) is None

    def test_append_skips_known_tables(self, tmp_path):
        fetcher = MemoryFetcher({key(9): [key(1)], key(10): [key(2)]})
        store = AddressLookupTableStore(tmp_path / "alt.json", {key(9): [key(3)]}, fetcher)

        assert store.update([key(9), key(10), key(10)], UpdateMode.APPEND) == 1
        assert fetcher.requests == [[key(10)]]
        assert store.resolve(key(9), 0) == key(3)

    def test_replace_refetches(self, tmp_path, memory_fetcher):
        fetcher = memory_fetcher({key(9): [key(1)]})
        store = AddressLookupTableStore(tmp_path / "alt.json", {key(9): [key(3)]}, fetcher)

        assert store.update([key(9)], UpdateMode.REPLACE) == 1
        assert store.resolve(key(9), 0) == key(1)

    def test_nothing_to_fetch(self, tmp_path):
        store = AddressLookupTableStore(tmp_path / "alt.json", {key(9): []})
        assert store.update([key(9)]) == 0

    def test_update_without_fetcher(self, tmp_path):
        store = AddressLookupTableStore(tmp_path / "alt.json")
        with pytest.raises(StoreError):
            store.update([key(9)])

    @pytest.mark.parametrize("content", ["not json", "[]", '{"other": 1}'])
    def test_corrupt_store(self, tmp_path, content):
        path = tmp_path / "alt.json"
        path.write_text(content)
        with pytest.raises(StoreError):
            AddressLookupTableStore.load_or_create(path)


class TestRpcFetcher:

    def test_fetches_and_parses(self, monkeypatch):
        calls = []

        def fake_post(url, json, timeout):
            calls.append((url, json, timeout))
            return rpc_reply([account_value([key(1), key(2)]), None])

        monkeypatch.setattr(requests, "post", fake_post)
        tables = RpcLookupTableFetcher("http://rpc.test", timeout=5.0)([key(9), key(10)])

        assert tables == {key(9): [key(1), key(2)]}
        url, payload, timeout = calls[0]
        assert (url, timeout) == ("http://rpc.test", 5.0)
        assert payload["method"] == "getMultipleAccounts"
        assert payload["params"][0] == [pubkey_to_base58(key(9)), pubkey_to_base58(key(10))]
        assert payload["params"][1] == {"encoding": "base64"}

    def test_requests_are_chunked(self, monkeypatch):
        sizes = []

        def fake_post(url, json, timeout):
            sizes.append(len(json["params"][0]))
            return rpc_reply([None] * len(json["params"][0]))

        monkeypatch.setattr(requests, "post", fake_post)
        keys = [(bytes([0xc0, i % 256, i // 256]) + bytes(29)).hex() for i in range(250)]
        assert RpcLookupTableFetcher("http://rpc.test")(keys) == {}
        assert sizes == [100, 100, 50]

    def test_rpc_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "busy"}}))
        with pytest.raises(StoreError):
            RpcLookupTableFetcher("http://rpc.test")([key(9)])

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse({}, status_code=503))
        with pytest.raises(StoreError):
            RpcLookupTableFetcher("http://rpc.test")([key(9)])

    def test_connection_error(self, monkeypatch):
        def fake_post(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", fake_post)
        with pytest.raises(StoreError):
            RpcLookupTableFetcher("http://rpc.test")([key(9)])

    def test_malformed_response(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse({"result": {}}))
        with pytest.raises(StoreError):
            RpcLookupTableFetcher("http://rpc.test")([key(9)])
