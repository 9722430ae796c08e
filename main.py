#!/usr/bin/env python3
"""Entry point for the Starknet transfer indexer.

Reads one block payload as JSON, decodes its Transfer events and writes the
normalized records to stdout as JSON lines (the console sink).
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, TextIO

# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Log records go to stderr so stdout only carries sink output.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from starknet_transfers.config import IndexerConfig
from starknet_transfers.errors import MalformedEventError, MetadataFetchError
from starknet_transfers.transfer_decoder import TransferDecoder


def write_records(records: list[dict[str, Any]], out: TextIO) -> None:
    """Write records to the console sink, one JSON object per line."""
    for record in records:
        out.write(json.dumps(record) + "\n")
    out.flush()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Starknet Transfer Indexer - decode one block of Transfer events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  CONTRACT_ADDRESS     - Token contract to match (default: Sepolia ETH)
  TOKEN_DECIMALS       - Token decimals (default: 18)
  TOKEN_SYMBOL         - Token symbol written to records (default: ETH)
  NETWORK_LABEL        - Network written to records (default: starknet-sepolia)
  NODE_RPC_URL         - Node queried for the spec version
  STREAM_URL           - Block stream URL
  STARTING_BLOCK       - First block to index (default: 200000)
  FINALITY             - Stream data status (default: DATA_STATUS_PENDING)
  SINK_TYPE            - Sink kind (default: console)
  SINK_TABLE_NAME      - Sink table (default: transfers)
  LOG_LEVEL            - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--input",
        default="-",
        help="Block payload JSON file ('-' for stdin, the default)"
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        default=False,
        help="Print the stream configuration as JSON and exit"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    return parser.parse_args(argv)


def load_payload(path: str) -> dict[str, Any]:
    """Load a block payload from a file or stdin."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the transfer indexer.

    Returns:
        Process exit code
    """
    args: argparse.Namespace = parse_args(argv)

    setup_logging(args.log_level)

    logger.info("=== Starknet Transfer Indexer Starting ===")
    logger.info("Loading configuration from environment...")

    try:
        config: IndexerConfig = IndexerConfig.from_env()
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables (see --help)")
        return 1

    config.log_config()

    if args.print_config:
        print(json.dumps(config.to_stream_config(), indent=2))
        return 0

    try:
        payload = load_payload(args.input)
        decoder: TransferDecoder = TransferDecoder(config)
        records = await decoder.transform_block(payload)
        write_records(records, sys.stdout)
        decoder.log_metrics()

    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read block payload: {e}")
        return 1

    except MetadataFetchError as e:
        logger.error(f"Chain metadata fetch failed: {e}")
        return 1

    except (MalformedEventError, ValueError) as e:
        logger.error(f"Malformed block payload: {e}")
        return 1

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
