#!/usr/bin/env python3
"""
Banking Trace CLI

Replays banking trace files recorded by a validator and runs one analysis
over them.

Usage:
    banking-trace --path trace.bin slot-ranges                  # Slots covered
    banking-trace --path trace.bin time-range                   # Time covered
    banking-trace --path trace.bin update-alt-store 100 200     # Fetch lookup tables
    banking-trace --path trace.bin account-usage 100 200        # Account contention
    banking-trace --path trace.bin graph out.json --slot 150    # Scheduling-order graph

Trace files given with several --path options are replayed in that order.
"""

import argparse
import logging
import sys
from ipaddress import ip_address
from typing import List, Optional

from .core.config import DEFAULT_ALT_STORE_PATH, DEFAULT_RPC_URL, TraceToolConfig
from .core.accounts import parse_pubkey
from .core.errors import BankingTraceError
from .core.lookup_tables import AddressLookupTableStore, RpcLookupTableFetcher, UpdateMode
from .core.resolver import TransactionResolver
from .trace.source import TraceEventHandler, process_event_files
from .trace.timestamps import parse_timestamp
from .trace.window import WindowFilter
from .analysis import (
    AccountUsageHandler,
    DumpHandler,
    DuplicateCheckHandler,
    GraphExportHandler,
    PacketCountHandler,
    SlotRangesHandler,
    TimeRangeHandler,
    UpdateAltStoreHandler,
)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def _timestamp(text: str) -> int:
    try:
        return parse_timestamp(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _pubkey(text: str) -> str:
    try:
        return parse_pubkey(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _ip(text: str):
    try:
        return ip_address(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _add_time_window(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--start-timestamp', type=_timestamp, help='Inclusive start (ISO-8601)')
    parser.add_argument('--end-timestamp', type=_timestamp, help='Inclusive end (ISO-8601)')


def _add_slot_window(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('start_slot', type=int, help='First slot (inclusive)')
    parser.add_argument('end_slot', type=int, help='Last slot (inclusive)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='banking-trace',
        description="Banking Trace Tool - replay and analyze validator banking traces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  banking-trace --path a.bin --path b.bin slot-ranges
  banking-trace --path a.bin packet-count --start-timestamp 2024-05-01T12:00:00Z
  banking-trace --path a.bin dump --account <pubkey> --skip-alt-resolution
  banking-trace --path a.bin update-alt-store 260000000 260000010 --replace
  banking-trace --path a.bin graph slot.json --slot 260000005
        """
    )

    parser.add_argument('--path', action='append', required=True,
                        help='Trace file to replay (repeatable, replayed in order)')
    parser.add_argument('--alt-store', default=DEFAULT_ALT_STORE_PATH,
                        help='Lookup table store (JSON, created if missing)')
    parser.add_argument('--rpc-url', default=DEFAULT_RPC_URL, help='RPC endpoint for lookup table fetches')
    parser.add_argument('--rpc-timeout', type=float, default=30.0, help='RPC request timeout in seconds')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Diagnostics level (stderr)')

    subparsers = parser.add_subparsers(dest='command', help='Available analyses')
    subparsers.required = True

    usage_parser = subparsers.add_parser('account-usage', help='Per-account read/write usage over a slot range')
    _add_slot_window(usage_parser)

    duplicate_parser = subparsers.add_parser('duplicate-check', help='Count repeated transactions')
    _add_time_window(duplicate_parser)

    count_parser = subparsers.add_parser('packet-count', help='Packet counts by validity, stake and source IP')
    _add_time_window(count_parser)

    subparsers.add_parser('slot-ranges', help='Runs of consecutive slots in the trace')
    subparsers.add_parser('time-range', help='Earliest and latest event timestamps')

    dump_parser = subparsers.add_parser('dump', help='Print transactions, optionally filtered')
    dump_parser.add_argument('--account', action='append', type=_pubkey, help='Only transactions touching this key')
    dump_parser.add_argument('--ip', action='append', type=_ip, help='Only packets from this address')
    dump_parser.add_argument('--skip-alt-resolution', action='store_true',
                             help='Use static keys only; do not open the lookup table store')
    _add_time_window(dump_parser)

    alt_parser = subparsers.add_parser('update-alt-store', help='Fetch lookup tables referenced in a slot range')
    _add_slot_window(alt_parser)
    alt_parser.add_argument('--replace', action='store_true', help='Refetch tables already in the store')

    graph_parser = subparsers.add_parser('graph', help='Export the scheduling-order graph as Graphia JSON')
    graph_parser.add_argument('output', help='Output JSON file')
    graph_parser.add_argument('--slot', type=int, help='Build the graph for this slot')
    _add_time_window(graph_parser)
    graph_parser.add_argument('--verify-signatures', action='store_true',
                              help='Drop transactions whose signatures do not verify')

    return parser


def open_store(config: TraceToolConfig) -> AddressLookupTableStore:
    fetcher = RpcLookupTableFetcher(config.rpc_url, timeout=config.rpc_timeout)
    return AddressLookupTableStore.load_or_create(config.alt_store_path, fetcher=fetcher)


def _graph_window(parser: argparse.ArgumentParser, args) -> WindowFilter:
    has_times = args.start_timestamp is not None or args.end_timestamp is not None
    if args.slot is not None and not has_times:
        return WindowFilter.for_slots(args.slot, args.slot)
    if args.slot is None and args.start_timestamp is not None and args.end_timestamp is not None:
        return WindowFilter.for_timestamps(args.start_timestamp, args.end_timestamp)
    parser.error("graph needs either --slot or both --start-timestamp and --end-timestamp")


def create_handler(parser: argparse.ArgumentParser, args, config: TraceToolConfig) -> TraceEventHandler:
    """Build the handler for the selected command."""
    resolver = TransactionResolver(verify_signatures=config.verify_signatures)

    if args.command == 'account-usage':
        window = WindowFilter.for_slots(args.start_slot, args.end_slot)
        return AccountUsageHandler(window, open_store(config), resolver)

    elif args.command == 'duplicate-check':
        return DuplicateCheckHandler(WindowFilter.for_timestamps(args.start_timestamp, args.end_timestamp))

    elif args.command == 'packet-count':
        return PacketCountHandler(WindowFilter.for_timestamps(args.start_timestamp, args.end_timestamp))

    elif args.command == 'slot-ranges':
        return SlotRangesHandler()

    elif args.command == 'time-range':
        return TimeRangeHandler()

    elif args.command == 'dump':
        window = WindowFilter.for_timestamps(args.start_timestamp, args.end_timestamp)
        store = None if args.skip_alt_resolution else open_store(config)
        return DumpHandler(window, accounts=args.account, ips=args.ip, store=store,
                           skip_alt_resolution=args.skip_alt_resolution, resolver=resolver)

    elif args.command == 'update-alt-store':
        window = WindowFilter.for_slots(args.start_slot, args.end_slot)
        mode = UpdateMode.REPLACE if args.replace else UpdateMode.APPEND
        return UpdateAltStoreHandler(window, open_store(config), mode)

    elif args.command == 'graph':
        return GraphExportHandler(_graph_window(parser, args), args.output, open_store(config), resolver)

    parser.error(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = TraceToolConfig.from_args(args)

    logging.basicConfig(stream=sys.stderr, level=config.log_level, format=LOG_FORMAT)

    try:
        handler = create_handler(parser, args, config)
        process_event_files(args.path, handler)
        handler.report()

    except KeyboardInterrupt:
        return 130

    except (BankingTraceError, OSError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
