"""
Error hierarchy for the banking trace tool.

Errors fall into a few families:
- Decode errors: malformed trace records or transaction bytes. Consumers
  skip the offending record and keep replaying.
- Resolution errors: a lookup-table reference the store cannot satisfy.
  The transaction is left out of any analysis that needs full lock knowledge.
- Store errors: the lookup-table store could not be read, written or refreshed.
  These are fatal to a run.
- Graph order errors: a caller broke the insertion contract of the
  conflict graph builder. These are programming errors.
"""


class BankingTraceError(Exception):
    """Base class for all errors raised by the banking trace tool."""


class DecodeError(BankingTraceError):
    """Raw bytes could not be decoded into a well-formed value."""


class TraceFormatError(DecodeError):
    """A trace file or one of its records is malformed."""


class SignatureError(DecodeError):
    """A transaction signature failed verification."""


class ResolutionError(BankingTraceError):
    """
    A transaction's account locks could not be resolved.

    Usually this means the lookup-table store is stale and needs an
    update for the slots being analyzed.
    """


class StoreError(BankingTraceError):
    """The lookup-table store could not be loaded, fetched or persisted."""


class GraphOrderError(BankingTraceError, ValueError):
    """A transaction was inserted out of priority order or twice."""
