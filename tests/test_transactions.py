"""
test_transactions.py

Tests for the transaction wire codec, sanitization and signatures.
"""

import pytest

from banking_trace.core.accounts import AccountLockSet, AccountMeta, parse_pubkey, pubkey_to_base58
from banking_trace.core.errors import DecodeError
from banking_trace.core.transactions import (
    Instruction,
    SolanaTransaction,
    TransactionBuilder,
    TransactionMessage,
    sign_transaction,
)

from conftest import BLOCKHASH, PROGRAM_ID, key, make_transaction


class TestWireFormat:

    def test_legacy_roundtrip(self):
        transaction = make_transaction(writable=[key(1)], readonly=[key(2)])
        decoded = SolanaTransaction.from_bytes(transaction.serialize())
        assert decoded == transaction
        assert decoded.message.version is None

    def test_v0_roundtrip_keeps_lookups(self):
        transaction = make_transaction(writable=[key(1)], lookups=[(key(9), [0, 2], [1])])
        decoded = SolanaTransaction.from_bytes(transaction.serialize())
        assert decoded.message.version == 0
        lookup = decoded.message.address_table_lookups[0]
        assert (lookup.account_key, lookup.writable_indexes, lookup.readonly_indexes) == (key(9), [0, 2], [1])

    def test_trailing_bytes_rejected(self):
        data = make_transaction(writable=[key(1)]).serialize()
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(data + b"\x00")

    @pytest.mark.parametrize("cut", [0, 1, 40, 70, 100])
    def test_truncated_rejected(self, cut):
        data = make_transaction(writable=[key(1)]).serialize()
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(data[:cut])

    def test_unsupported_version_rejected(self):
        transaction = make_transaction(lookups=[(key(9), [0], [])])
        data = bytearray(transaction.serialize())
        data[1 + 64] = 0x81
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(bytes(data))

    def test_message_deserialize(self):
        message = make_transaction(writable=[key(1)]).message
        assert TransactionMessage.deserialize(message.serialize()) == message


class TestSanitize:

    def test_signature_count_must_match_header(self):
        transaction = make_transaction(writable=[key(1)])
        transaction.signatures.append("00" * 64)
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(transaction.serialize())

    def test_duplicate_keys_rejected(self):
        transaction = make_transaction(writable=[key(1)], readonly=[key(2)])
        transaction.message.account_keys[-1] = transaction.message.account_keys[-2]
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(transaction.serialize())

    def test_program_index_out_of_range(self):
        transaction = make_transaction(writable=[key(1)])
        transaction.message.instructions[0].program_id_index = 99
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(transaction.serialize())

    def test_fee_payer_must_be_writable(self):
        transaction = make_transaction(writable=[key(1)])
        transaction.message.header.num_readonly_signed_accounts = 1
        with pytest.raises(DecodeError):
            SolanaTransaction.from_bytes(transaction.serialize())


class TestAccounts:

    def test_header_roles(self):
        transaction = make_transaction(writable=[key(1)], readonly=[key(2)])
        payer = transaction.get_fee_payer()
        assert transaction.get_writable_accounts() == {payer, key(1)}
        assert transaction.get_readonly_accounts() == {key(2), PROGRAM_ID}

    def test_lock_set_removes_writable_from_readonly(self):
        lock_set = AccountLockSet(("A", "B", "A"), ("B", "C", "C"))
        assert lock_set.writable == ("A", "B")
        assert lock_set.readonly == ("C",)
        assert len(lock_set) == 3 and "C" in lock_set

    def test_conflicts(self):
        writer = AccountLockSet(("A",), ())
        reader = AccountLockSet((), ("A",))
        assert writer.conflicts_with(reader) and reader.conflicts_with(writer)
        assert not reader.conflicts_with(AccountLockSet((), ("A",)))

    def test_parse_pubkey_accepts_hex_and_base58(self):
        hex_key = key(7)
        assert parse_pubkey(hex_key) == hex_key
        assert parse_pubkey(hex_key.upper()) == hex_key
        assert parse_pubkey(pubkey_to_base58(hex_key)) == hex_key

    def test_parse_pubkey_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_pubkey("not-a-key!")


class TestSignatures:

    def test_valid_signature(self):
        assert make_transaction(writable=[key(1)]).verify_signatures()

    def test_tampered_message(self):
        transaction = make_transaction(writable=[key(1)])
        transaction.message.instructions[-1].data = b"\x02"
        assert not transaction.verify_signatures()

    def test_signed_by_fixture_keypair(self, keypair):
        signing_key, payer = keypair
        message = TransactionBuilder(payer, BLOCKHASH).add_instruction(
            Instruction(PROGRAM_ID, [AccountMeta(key(1), is_signer=False, is_writable=True)], b"")
        ).build()
        transaction = sign_transaction(message, [signing_key])

        assert transaction.get_fee_payer() == payer
        assert SolanaTransaction.from_bytes(transaction.serialize()).verify_signatures()

    def test_wrong_signer(self, keypair):
        other_key, _ = keypair
        transaction = make_transaction(writable=[key(1)])
        forged = sign_transaction(transaction.message, [other_key])
        assert not forged.verify_signatures()
