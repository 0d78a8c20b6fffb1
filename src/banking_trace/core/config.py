"""
Run configuration for the banking trace tool.

Every command shares the same small set of knobs: where the lookup-table
store lives, which RPC endpoint refreshes it, and how strict decoding is.
"""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_ALT_STORE_PATH = "alt-store.json"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"


@dataclass
class TraceToolConfig:
    """Settings for a single CLI run."""
    alt_store_path: Path = Path(DEFAULT_ALT_STORE_PATH)
    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: float = 30.0        # Seconds per JSON-RPC request
    verify_signatures: bool = False  # Strict mode: drop badly signed packets
    log_level: str = "WARNING"

    @classmethod
    def from_args(cls, args) -> 'TraceToolConfig':
        """Build a config from a parsed argparse namespace."""
        return cls(
            alt_store_path=Path(args.alt_store),
            rpc_url=args.rpc_url,
            rpc_timeout=args.rpc_timeout,
            verify_signatures=getattr(args, 'verify_signatures', False),
            log_level=args.log_level,
        )
