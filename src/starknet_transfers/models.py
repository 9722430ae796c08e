#!/usr/bin/env python3
"""Data models for the Starknet transfer indexer.

This module provides immutable data classes for the block header and raw
events delivered by the stream, and for the normalized transfer records
handed to the sink.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .errors import MalformedEventError
from .utils.felt_utility import parse_felt


@dataclass(frozen=True, slots=True)
class BlockHeader:
    """Represents the header of the block being transformed.

    Attributes:
        block_number: The block number
        block_hash: The block hash (opaque, passed through unchanged)
        timestamp: Block timestamp as delivered by the stream
    """

    block_number: int
    block_hash: str
    timestamp: Any

    def __post_init__(self) -> None:
        """Validate the block number."""
        if self.block_number < 0:
            raise ValueError(f"Block number must be non-negative, got {self.block_number}")

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"BlockHeader(number={self.block_number}, "
            f"hash={self.block_hash[:10]}...)"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockHeader":
        """Build a header from the stream's camelCase payload.

        The block number may arrive as an integer, a decimal string or a
        hex string.

        Raises:
            ValueError: If a field is missing or the block number is invalid
        """
        try:
            block_number = parse_felt(data["blockNumber"])
            block_hash = data["blockHash"]
            timestamp = data["timestamp"]
        except KeyError as e:
            raise ValueError(f"Block header is missing field {e}") from None

        return cls(
            block_number=block_number,
            block_hash=block_hash,
            timestamp=timestamp
        )


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Represents one matched on-chain event together with its receipt.

    Attributes:
        data: Event payload fields (felts), in emission order
        index: Index of the event within the block
        transaction_hash: Hash of the transaction that emitted the event
    """

    data: tuple[str, ...]
    index: int
    transaction_hash: str

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"RawEvent(tx={self.transaction_hash[:10]}..., "
            f"index={self.index}, "
            f"fields={len(self.data)})"
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawEvent":
        """Build an event from the stream's ``{event, receipt}`` pair.

        Raises:
            MalformedEventError: If the event or its receipt is incomplete
        """
        if not isinstance(data, Mapping):
            raise MalformedEventError(f"Expected an event mapping, got {type(data).__name__}")

        event = data.get("event")
        receipt = data.get("receipt")
        if not isinstance(event, Mapping):
            raise MalformedEventError("Event entry has no 'event' object")
        if not isinstance(receipt, Mapping):
            raise MalformedEventError("Event entry has no 'receipt' object (includeReceipt disabled?)")

        payload = event.get("data")
        if payload is None or isinstance(payload, (str, bytes)):
            raise MalformedEventError("Event has no data fields")

        index = event.get("index")
        if index is None:
            raise MalformedEventError("Event has no index")

        transaction_hash = receipt.get("transactionHash")
        if not transaction_hash:
            raise MalformedEventError("Receipt has no transactionHash")

        try:
            index = parse_felt(index)
        except ValueError as e:
            raise MalformedEventError(f"Invalid event index: {e}") from e

        return cls(
            data=tuple(payload),
            index=index,
            transaction_hash=transaction_hash
        )


@dataclass(frozen=True, slots=True)
class TransferRecord:
    """A normalized, storage-ready token transfer.

    Field names are snake_case so they map directly onto relational
    column names.

    Attributes:
        network: Network label of this deployment
        symbol: Token symbol of this deployment
        block_hash: Hash of the block containing the transfer
        block_number: Number of the block containing the transfer
        block_timestamp: Timestamp of the block containing the transfer
        transaction_hash: Hash of the emitting transaction
        transfer_id: "<transaction_hash>_<event_index>", the sink's natural key
        from_address: Sender address, verbatim from the payload
        to_address: Recipient address, verbatim from the payload
        amount: Amount scaled by the token decimals
        amount_raw: Full-precision amount as a decimal string
        spec_version: Spec version reported by the node for this block
    """

    network: str
    symbol: str
    block_hash: str
    block_number: int
    block_timestamp: Any
    transaction_hash: str
    transfer_id: str
    from_address: str
    to_address: str
    amount: float
    amount_raw: str
    spec_version: str

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"TransferRecord(id={self.transfer_id}, "
            f"amount={self.amount} {self.symbol}, "
            f"block={self.block_number})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the sink."""
        return {
            "network": self.network,
            "symbol": self.symbol,
            "block_hash": self.block_hash,
            "block_number": self.block_number,
            "block_timestamp": self.block_timestamp,
            "transaction_hash": self.transaction_hash,
            "transfer_id": self.transfer_id,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": self.amount,
            "amount_raw": self.amount_raw,
            "spec_version": self.spec_version
        }

    @property
    def unique_key(self) -> str:
        """Key used by the sink for deduplication."""
        return self.transfer_id
