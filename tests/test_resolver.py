"""
test_resolver.py

Tests for transaction decoding and account lock resolution.
"""

import pytest

from banking_trace.core.errors import DecodeError, ResolutionError, SignatureError
from banking_trace.core.lookup_tables import AddressLookupTableStore
from banking_trace.core.resolver import TransactionResolver

from conftest import PROGRAM_ID, key, make_transaction

TABLE = key(9)


@pytest.fixture
def store(tmp_path):
    return AddressLookupTableStore(tmp_path / "alt.json", {TABLE: [key(20), key(21), key(22)]})


class TestDecode:

    def test_priority_and_cus(self, transaction_factory):
        transaction = transaction_factory(writable=[key(1)], price=777)
        decoded = TransactionResolver().decode(transaction.serialize())
        assert decoded.priority == 777
        assert decoded.requested_compute_units == 1_400_000
        assert decoded.signature == transaction.signature
        assert decoded.locks is None

    def test_garbage(self):
        with pytest.raises(DecodeError):
            TransactionResolver().decode(b"\x01\x02\x03")

    def test_strict_mode_rejects_bad_signature(self):
        transaction = make_transaction(writable=[key(1)])
        transaction.signatures[0] = "00" * 64
        data = transaction.serialize()

        assert TransactionResolver().decode(data).signature == "00" * 64
        with pytest.raises(SignatureError):
            TransactionResolver(verify_signatures=True).decode(data)


class TestResolveLocks:

    def test_legacy_locks(self):
        transaction = make_transaction(writable=[key(1)], readonly=[key(2)])
        decoded = TransactionResolver().resolve(transaction.serialize(), None)
        assert set(decoded.locks.writable) == {transaction.get_fee_payer(), key(1)}
        assert set(decoded.locks.readonly) == {key(2), PROGRAM_ID}

    def test_lookup_accounts(self, store):
        transaction = make_transaction(writable=[key(1)], lookups=[(TABLE, [2], [0])])
        decoded = TransactionResolver().resolve(transaction.serialize(), store)
        assert key(22) in decoded.locks.writable
        assert key(20) in decoded.locks.readonly
        assert key(21) not in decoded.locks

    def test_locks_are_disjoint(self, store):
        transaction = make_transaction(writable=[key(1), key(2)], readonly=[key(3)],
                                       lookups=[(TABLE, [0, 1], [2])])
        locks = TransactionResolver().resolve(transaction.serialize(), store).locks
        assert not set(locks.writable) & set(locks.readonly)
        assert len(locks) == 8

    def test_invoked_program_is_readonly(self):
        transaction = make_transaction(writable=[PROGRAM_ID, key(1)])
        assert PROGRAM_ID in transaction.get_writable_accounts()

        locks = TransactionResolver().resolve(transaction.serialize(), None).locks
        assert PROGRAM_ID in locks.readonly
        assert PROGRAM_ID not in locks.writable

    def test_missing_store(self):
        transaction = make_transaction(lookups=[(TABLE, [0], [])])
        with pytest.raises(ResolutionError):
            TransactionResolver().resolve(transaction.serialize(), None)

    def test_unknown_table(self, store):
        transaction = make_transaction(lookups=[(key(10), [0], [])])
        with pytest.raises(ResolutionError):
            TransactionResolver().resolve(transaction.serialize(), store)

    def test_index_out_of_range(self, store):
        transaction = make_transaction(lookups=[(TABLE, [], [3])])
        with pytest.raises(ResolutionError):
            TransactionResolver().resolve(transaction.serialize(), store)

    def test_account_loaded_twice(self, tmp_path):
        transaction = make_transaction(writable=[key(1)], lookups=[(TABLE, [0], [])])
        duplicate_store = AddressLookupTableStore(tmp_path / "alt.json", {TABLE: [key(1)]})
        with pytest.raises(ResolutionError):
            TransactionResolver().resolve(transaction.serialize(), duplicate_store)
