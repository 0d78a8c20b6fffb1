"""
Nanosecond timestamps.

Trace events are stamped with integer nanoseconds since the Unix epoch.
`datetime` stops at microseconds, so the sub-microsecond digits are carried
alongside it when parsing and formatting.
"""

import re
from datetime import datetime, timezone

NANOS_PER_SECOND = 1_000_000_000

_FRACTION = re.compile(r'^(?P<head>[^.]*T\d{2}:\d{2}:\d{2})(?:[.,](?P<fraction>\d{1,9}))?(?P<tail>.*)$')


def parse_timestamp(text: str) -> int:
    """
    Parse an ISO-8601 timestamp with up to nine fractional digits.

    A timestamp without an offset is taken to be UTC; `Z` is accepted.

    Raises:
        ValueError: if the text is not a valid timestamp
    """
    match = _FRACTION.match(text.strip())
    if not match:
        raise ValueError(f"Invalid timestamp {text!r}: expected YYYY-MM-DDTHH:MM:SS[.fffffffff][offset]")

    tail = match.group('tail')
    if tail in ('Z', 'z'):
        tail = '+00:00'
    whole = datetime.fromisoformat(match.group('head') + tail)
    if whole.tzinfo is None:
        whole = whole.replace(tzinfo=timezone.utc)

    fraction = (match.group('fraction') or '').ljust(9, '0')
    epoch_seconds = int(whole.timestamp())
    return epoch_seconds * NANOS_PER_SECOND + int(fraction)


def format_timestamp(timestamp_ns: int) -> str:
    """Render as ISO-8601 UTC with nanosecond precision, e.g. 2024-01-02T03:04:05.123456789Z."""
    seconds, nanos = divmod(timestamp_ns, NANOS_PER_SECOND)
    whole = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return f"{whole.strftime('%Y-%m-%dT%H:%M:%S')}.{nanos:09d}Z"
