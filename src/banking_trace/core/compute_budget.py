"""
Compute Budget Instructions

Transactions buy scheduling priority and compute headroom through
instructions addressed to the Compute Budget program:
- SetComputeUnitPrice sets the priority (micro-lamports per compute unit)
- SetComputeUnitLimit sets the requested compute units
- RequestUnitsDeprecated did both, in the older fee-per-transaction style

Instruction data is borsh: a u8 tag followed by little-endian fields.

Based on: https://solana.com/docs/core/fees#compute-budget
"""

from typing import Optional, Tuple

from .errors import DecodeError
from .transactions import Instruction, TransactionMessage

# ComputeBudget111111111111111111111111111111
COMPUTE_BUDGET_PROGRAM_ID = "0306466fe5211732ffecadba72c39be7bc8ce5bbc5f7126b2c439b3a40000000"

DEFAULT_INSTRUCTION_COMPUTE_UNITS = 200_000
MAX_COMPUTE_UNITS = 1_400_000

REQUEST_UNITS_DEPRECATED = 0
REQUEST_HEAP_FRAME = 1
SET_COMPUTE_UNIT_LIMIT = 2
SET_COMPUTE_UNIT_PRICE = 3
SET_LOADED_ACCOUNTS_DATA_SIZE_LIMIT = 4

_PAYLOAD_SIZES = {
    REQUEST_UNITS_DEPRECATED: 8,
    REQUEST_HEAP_FRAME: 4,
    SET_COMPUTE_UNIT_LIMIT: 4,
    SET_COMPUTE_UNIT_PRICE: 8,
    SET_LOADED_ACCOUNTS_DATA_SIZE_LIMIT: 4,
}


def _parse(data: bytes) -> Tuple[int, bytes]:
    if not data:
        raise DecodeError("Empty compute budget instruction")

    tag, payload = data[0], data[1:]
    if tag not in _PAYLOAD_SIZES:
        raise DecodeError(f"Unknown compute budget instruction {tag}")
    # Borsh ignores trailing bytes when deserializing unchecked
    if len(payload) < _PAYLOAD_SIZES[tag]:
        raise DecodeError(f"Truncated compute budget instruction {tag}")
    return tag, payload


def get_priority_and_requested_cus(message: TransactionMessage) -> Tuple[int, int]:
    """
    Extract (priority, requested compute units) from a message.

    Without an explicit limit, each non compute budget instruction is
    assumed to request 200k units. The result is then raised to at least
    1.4M units, matching how the trace tooling has always reported it.

    Raises:
        DecodeError: if a compute budget instruction is malformed
    """
    non_compute_budget_ix_count = 0
    priority = 0
    requested_cus: Optional[int] = None

    for program_id, instruction in message.program_instructions_iter():
        if program_id != COMPUTE_BUDGET_PROGRAM_ID:
            non_compute_budget_ix_count += 1
            continue

        tag, payload = _parse(instruction.data)
        if tag == REQUEST_UNITS_DEPRECATED:
            units = int.from_bytes(payload[0:4], 'little')
            additional_fee = int.from_bytes(payload[4:8], 'little')
            requested_cus = units
            priority = additional_fee * 1_000_000 // units if units else 0
        elif tag == SET_COMPUTE_UNIT_LIMIT:
            requested_cus = int.from_bytes(payload[0:4], 'little')
        elif tag == SET_COMPUTE_UNIT_PRICE:
            priority = int.from_bytes(payload[0:8], 'little')

    if requested_cus is None:
        requested_cus = non_compute_budget_ix_count * DEFAULT_INSTRUCTION_COMPUTE_UNITS

    return priority, max(requested_cus, MAX_COMPUTE_UNITS)


# Instruction constructors, mostly useful for building fixtures

def set_compute_unit_price(micro_lamports: int) -> Instruction:
    data = bytes([SET_COMPUTE_UNIT_PRICE]) + micro_lamports.to_bytes(8, 'little')
    return Instruction(program_id=COMPUTE_BUDGET_PROGRAM_ID, accounts=[], data=data)


def set_compute_unit_limit(units: int) -> Instruction:
    data = bytes([SET_COMPUTE_UNIT_LIMIT]) + units.to_bytes(4, 'little')
    return Instruction(program_id=COMPUTE_BUDGET_PROGRAM_ID, accounts=[], data=data)


def request_units_deprecated(units: int, additional_fee: int) -> Instruction:
    data = (bytes([REQUEST_UNITS_DEPRECATED]) + units.to_bytes(4, 'little')
            + additional_fee.to_bytes(4, 'little'))
    return Instruction(program_id=COMPUTE_BUDGET_PROGRAM_ID, accounts=[], data=data)
