"""
test_compute_budget.py

Tests for priority and requested compute unit extraction.
"""

import pytest

from banking_trace.core.compute_budget import (
    COMPUTE_BUDGET_PROGRAM_ID,
    get_priority_and_requested_cus,
    request_units_deprecated,
)
from banking_trace.core.errors import DecodeError
from banking_trace.core.transactions import Instruction, TransactionBuilder

from conftest import BLOCKHASH, key, make_transaction


def message_with(*instructions):
    builder = TransactionBuilder(key(100), BLOCKHASH)
    builder.add_instructions(list(instructions))
    return builder.build()


class TestComputeBudget:

    def test_defaults(self):
        message = make_transaction(writable=[key(1)]).message
        assert get_priority_and_requested_cus(message) == (0, 1_400_000)

    def test_price_sets_priority(self):
        message = make_transaction(writable=[key(1)], price=5_000).message
        assert get_priority_and_requested_cus(message)[0] == 5_000

    def test_explicit_limit_below_floor_is_raised(self):
        message = make_transaction(writable=[key(1)], price=1, limit=300_000).message
        assert get_priority_and_requested_cus(message) == (1, 1_400_000)

    def test_many_instructions_exceed_floor(self):
        message = message_with(*[Instruction(key(50 + i), [], b"") for i in range(8)])
        assert get_priority_and_requested_cus(message) == (0, 8 * 200_000)

    def test_deprecated_request_units(self):
        message = message_with(request_units_deprecated(100_000, 2_000), Instruction(key(50), [], b""))
        priority, requested = get_priority_and_requested_cus(message)
        assert priority == 2_000 * 1_000_000 // 100_000
        assert requested == 1_400_000

    def test_deprecated_request_zero_units(self):
        message = message_with(request_units_deprecated(0, 2_000))
        assert get_priority_and_requested_cus(message)[0] == 0

    @pytest.mark.parametrize("data", [b"", b"\x09", b"\x03\x01\x02"])
    def test_malformed_instruction(self, data):
        message = message_with(Instruction(COMPUTE_BUDGET_PROGRAM_ID, [], data))
        with pytest.raises(DecodeError):
            get_priority_and_requested_cus(message)
