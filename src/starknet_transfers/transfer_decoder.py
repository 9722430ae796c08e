#!/usr/bin/env python3
"""Transfer decoding module for the Starknet transfer indexer.

This module turns one block's matched Transfer events into normalized
transfer records. The node spec version is fetched once per block and
shared by every record of that block.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .config import IndexerConfig
from .errors import MalformedEventError, MetadataFetchError
from .models import BlockHeader, RawEvent, TransferRecord
from .utils.felt_utility import format_units, uint256_from_limbs
from .utils.node_rpc_utility import NodeRpcUtility

# Get logger for this module
logger = logging.getLogger(__name__)

# from_address, to_address, amount.low, amount.high
TRANSFER_FIELD_COUNT = 4


class TransferDecoder:
    """Decodes and normalizes Transfer events for a single block.

    This class is responsible for:
    - Fetching the node spec version once per block
    - Rebuilding u256 amounts from their two 128-bit limbs
    - Scaling amounts by the configured token decimals
    - Deriving the per-event transfer id
    - Maintaining metrics on decoded blocks and transfers

    Each call to transform is independent; no block data is kept between
    calls.
    """

    def __init__(
        self,
        config: IndexerConfig,
        rpc: NodeRpcUtility | None = None
    ) -> None:
        """Initialize the TransferDecoder.

        Args:
            config: Validated indexer configuration
            rpc: Node RPC utility (built from config.node_rpc when omitted)
        """
        self.config = config
        self.rpc = rpc or NodeRpcUtility(
            rpc_url=config.node_rpc.rpc_url,
            spec_version_method=config.node_rpc.spec_version_method,
            timeout=float(config.node_rpc.request_timeout)
        )

        # Metrics tracking
        self.blocks_processed = 0
        self.blocks_failed = 0
        self.transfers_decoded = 0

        logger.info(
            f"TransferDecoder initialized for {config.token.symbol} "
            f"on {config.token.network_label} "
            f"({config.token.decimals} decimals)"
        )

    async def transform(
        self,
        header: BlockHeader,
        events: Sequence[RawEvent]
    ) -> list[TransferRecord]:
        """Transform one block's events into transfer records.

        The spec version is fetched before any event is decoded. Either
        every event is decoded or the whole block fails.

        Args:
            header: Header of the block
            events: Matched events, in block order

        Returns:
            One record per event, in input order

        Raises:
            MetadataFetchError: If the spec version cannot be fetched
            MalformedEventError: If an event is not a valid transfer
        """
        try:
            spec_version = await self.rpc.fetch_spec_version()
            records = [
                self.decode_event(event, header, spec_version)
                for event in events
            ]
        except (MetadataFetchError, MalformedEventError) as e:
            self.blocks_failed += 1
            logger.error(f"Failed to transform block {header.block_number}: {e}")
            raise

        self.blocks_processed += 1
        self.transfers_decoded += len(records)
        logger.info(
            f"Decoded {len(records)} transfers from block {header.block_number} "
            f"(spec version {spec_version})"
        )
        return records

    def decode_event(
        self,
        event: RawEvent,
        header: BlockHeader,
        spec_version: str
    ) -> TransferRecord:
        """Decode a single Transfer event.

        Args:
            event: The raw event
            header: Header of the block containing the event
            spec_version: Spec version shared by the block

        Returns:
            The normalized transfer record

        Raises:
            MalformedEventError: If the payload is not a valid transfer
        """
        if len(event.data) < TRANSFER_FIELD_COUNT:
            raise MalformedEventError(
                f"Transfer event {event.transaction_hash}_{event.index} has "
                f"{len(event.data)} data fields, expected at least {TRANSFER_FIELD_COUNT}"
            )

        from_address, to_address, amount_low, amount_high = event.data[:TRANSFER_FIELD_COUNT]

        try:
            amount_raw = uint256_from_limbs(low=amount_low, high=amount_high)
        except ValueError as e:
            raise MalformedEventError(
                f"Invalid amount in transfer event {event.transaction_hash}_{event.index}: {e}"
            ) from e

        token = self.config.token
        amount = format_units(amount_raw, token.decimals)

        record = TransferRecord(
            network=token.network_label,
            symbol=token.symbol,
            block_hash=header.block_hash,
            block_number=header.block_number,
            block_timestamp=header.timestamp,
            transaction_hash=event.transaction_hash,
            transfer_id=f"{event.transaction_hash}_{event.index}",
            from_address=from_address,
            to_address=to_address,
            amount=float(amount),
            amount_raw=str(amount_raw),
            spec_version=spec_version
        )

        logger.debug(f"Decoded {record}")
        return record

    async def transform_block(self, payload: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Transform a block in the stream's wire format.

        Args:
            payload: ``{"header": {...}, "events": [{"event": ..., "receipt": ...}]}``

        Returns:
            The records as snake_case dictionaries, ready for the sink

        Raises:
            ValueError: If the header is missing or invalid
            MetadataFetchError: If the spec version cannot be fetched
            MalformedEventError: If an event is not a valid transfer
        """
        header_data = payload.get("header")
        if not isinstance(header_data, Mapping):
            raise ValueError("Block payload has no header")

        header = BlockHeader.from_dict(header_data)
        events = [RawEvent.from_dict(item) for item in payload.get("events") or []]

        records = await self.transform(header, events)
        return [record.to_dict() for record in records]

    def get_metrics(self) -> dict[str, int]:
        """Get current decoding metrics.

        Returns:
            Dictionary of metric names to values
        """
        return {
            "blocks_processed": self.blocks_processed,
            "blocks_failed": self.blocks_failed,
            "transfers_decoded": self.transfers_decoded
        }

    def log_metrics(self) -> None:
        """Log current decoding metrics."""
        metrics = self.get_metrics()
        logger.info(
            f"TransferDecoder Metrics: "
            f"Blocks={metrics['blocks_processed']}, "
            f"Failed={metrics['blocks_failed']}, "
            f"Transfers={metrics['transfers_decoded']}"
        )
