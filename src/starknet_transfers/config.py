#!/usr/bin/env python3
"""Configuration management for the Starknet transfer indexer.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate, and is validated once at startup so that a bad value
fails loudly instead of being masked at decode time.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import urlparse

from .utils.felt_utility import get_selector_from_name

# Get logger for this module
logger = logging.getLogger(__name__)

# Starknet addresses are felts below 2**251
ADDRESS_BOUND = 2 ** 251


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable.

    Unset or empty variables yield the default. Anything else must parse
    as an integer.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(
            f"{name} must be an integer, got {raw!r}"
        ) from None


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable ("true"/"false", "1"/"0")."""
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes"):
        return True
    if raw in ("0", "false", "no"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class StreamConfig:
    """Configuration for the block stream feeding the indexer.

    Attributes:
        stream_url: URL of the block stream
        starting_block: First block to index
        network: Stream network name
        finality: Data status the stream should include
    """

    stream_url: str = "https://sepolia.starknet.a5a.ch"
    starting_block: int = 200000
    network: str = "starknet"
    finality: str = "DATA_STATUS_PENDING"

    SUPPORTED_FINALITY: ClassVar[set[str]] = {
        'DATA_STATUS_PENDING',
        'DATA_STATUS_ACCEPTED',
        'DATA_STATUS_FINALIZED'
    }

    def __post_init__(self) -> None:
        """Validate stream configuration."""
        if not self.stream_url:
            raise ValueError("Stream URL is required (STREAM_URL)")

        parsed = urlparse(self.stream_url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(
                f"Invalid stream URL scheme: {parsed.scheme}. "
                "Expected http or https"
            )

        if self.starting_block < 0:
            raise ValueError(
                f"Starting block must be non-negative, got {self.starting_block}"
            )

        if self.finality not in self.SUPPORTED_FINALITY:
            raise ValueError(
                f"Unsupported finality: {self.finality}. "
                f"Supported values: {', '.join(sorted(self.SUPPORTED_FINALITY))}"
            )


@dataclass(frozen=True, slots=True)
class FilterConfig:
    """Configuration of the events the stream should match.

    Attributes:
        contract_address: Address of the token contract emitting the events
        event_name: Name of the event to match
        include_receipt: Whether the stream attaches transaction receipts
        weak_header: Whether headers are only sent for blocks with matches
    """

    contract_address: str = (
        "0x049D36570D4e46f48e99674bd3fcc84644DdD6b96F7C741B1562B82f9e004dC7"
    )
    event_name: str = "Transfer"
    include_receipt: bool = True
    weak_header: bool = True

    def __post_init__(self) -> None:
        """Validate filter configuration."""
        if not self.contract_address:
            raise ValueError("Contract address is required (CONTRACT_ADDRESS)")

        address = self.contract_address
        digits = address[2:] if address[:2].lower() == '0x' else ''
        if not digits or len(digits) > 64:
            raise ValueError(f"Invalid contract address: {address}")

        try:
            value = int(digits, 16)
        except ValueError:
            raise ValueError(f"Invalid contract address: {address}") from None

        if value >= ADDRESS_BOUND:
            raise ValueError(f"Contract address out of range: {address}")

        # Normalize to the zero-padded lowercase form
        normalized = f"0x{value:064x}"
        if normalized != address:
            object.__setattr__(self, 'contract_address', normalized)

        if not self.event_name:
            raise ValueError("Event name is required (EVENT_NAME)")

        if not self.include_receipt:
            raise ValueError(
                "Receipts are required to derive transfer ids (INCLUDE_RECEIPT)"
            )

    @property
    def selector(self) -> str:
        """Starknet selector of the filtered event."""
        return get_selector_from_name(self.event_name)

    def to_dict(self) -> dict[str, Any]:
        """Render the filter in the stream's format."""
        return {
            "header": {"weak": self.weak_header},
            "events": [
                {
                    "fromAddress": self.contract_address,
                    "keys": [self.selector],
                    "includeReceipt": self.include_receipt,
                }
            ],
        }


@dataclass(frozen=True, slots=True)
class TokenConfig:
    """Deployment constants describing the indexed token.

    Attributes:
        network_label: Network label written into every record
        symbol: Token symbol written into every record
        decimals: Fixed-point exponent used to scale raw amounts
    """

    network_label: str = "starknet-sepolia"
    symbol: str = "ETH"
    decimals: int = 18

    def __post_init__(self) -> None:
        """Validate token configuration."""
        if not self.network_label:
            raise ValueError("Network label is required (NETWORK_LABEL)")
        if not self.symbol:
            raise ValueError("Token symbol is required (TOKEN_SYMBOL)")
        if self.decimals < 0:
            raise ValueError(f"Token decimals must be non-negative, got {self.decimals}")
        if self.decimals > 255:
            raise ValueError(f"Token decimals too high (max 255), got {self.decimals}")


@dataclass(frozen=True, slots=True)
class NodeRpcConfig:
    """Configuration of the node queried for chain metadata.

    Attributes:
        rpc_url: HTTP(S) JSON-RPC endpoint of the node
        spec_version_method: RPC method returning the spec version
        request_timeout: HTTP request timeout in seconds
    """

    rpc_url: str = "https://free-rpc.nethermind.io/sepolia-juno/"
    spec_version_method: str = "starknet_specVersion"
    request_timeout: int = 30

    def __post_init__(self) -> None:
        """Validate node RPC configuration."""
        if not self.rpc_url:
            raise ValueError("Node RPC URL is required (NODE_RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http or https"
            )

        if not self.spec_version_method:
            raise ValueError("Spec version method is required (SPEC_VERSION_METHOD)")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class SinkConfig:
    """Configuration of the sink receiving the records.

    Attributes:
        sink_type: Sink kind understood by the runner
        table_name: Target table for relational sinks
    """

    sink_type: str = "console"
    table_name: str = "transfers"

    def __post_init__(self) -> None:
        """Validate sink configuration."""
        if not self.sink_type:
            raise ValueError("Sink type is required (SINK_TYPE)")
        if not self.table_name:
            raise ValueError("Sink table name is required (SINK_TABLE_NAME)")


@dataclass(frozen=True, slots=True)
class IndexerConfig:
    """Main configuration for the transfer indexer.

    Attributes:
        stream: Block stream settings
        filter: Event filter settings
        token: Token deployment constants
        node_rpc: Node used for chain metadata
        sink: Sink settings
    """

    stream: StreamConfig = field(default_factory=StreamConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    node_rpc: NodeRpcConfig = field(default_factory=NodeRpcConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)

    @classmethod
    def from_env(cls) -> "IndexerConfig":
        """Load configuration from environment variables.

        Returns:
            IndexerConfig instance with loaded values

        Raises:
            ValueError: If an environment variable is invalid
        """
        stream_defaults = StreamConfig()
        stream_config = StreamConfig(
            stream_url=os.environ.get("STREAM_URL", stream_defaults.stream_url),
            starting_block=_env_int("STARTING_BLOCK", stream_defaults.starting_block),
            network=os.environ.get("STREAM_NETWORK", stream_defaults.network),
            finality=os.environ.get("FINALITY", stream_defaults.finality)
        )

        filter_defaults = FilterConfig()
        filter_config = FilterConfig(
            contract_address=os.environ.get(
                "CONTRACT_ADDRESS", filter_defaults.contract_address
            ),
            event_name=os.environ.get("EVENT_NAME", filter_defaults.event_name),
            include_receipt=_env_bool("INCLUDE_RECEIPT", filter_defaults.include_receipt),
            weak_header=_env_bool("WEAK_HEADER", filter_defaults.weak_header)
        )

        token_defaults = TokenConfig()
        token_config = TokenConfig(
            network_label=os.environ.get("NETWORK_LABEL", token_defaults.network_label),
            symbol=os.environ.get("TOKEN_SYMBOL", token_defaults.symbol),
            decimals=_env_int("TOKEN_DECIMALS", token_defaults.decimals)
        )

        rpc_defaults = NodeRpcConfig()
        node_rpc_config = NodeRpcConfig(
            rpc_url=os.environ.get("NODE_RPC_URL", rpc_defaults.rpc_url),
            spec_version_method=os.environ.get(
                "SPEC_VERSION_METHOD", rpc_defaults.spec_version_method
            ),
            request_timeout=_env_int("REQUEST_TIMEOUT", rpc_defaults.request_timeout)
        )

        sink_defaults = SinkConfig()
        sink_config = SinkConfig(
            sink_type=os.environ.get("SINK_TYPE", sink_defaults.sink_type),
            table_name=os.environ.get("SINK_TABLE_NAME", sink_defaults.table_name)
        )

        return cls(
            stream=stream_config,
            filter=filter_config,
            token=token_config,
            node_rpc=node_rpc_config,
            sink=sink_config
        )

    def to_stream_config(self) -> dict[str, Any]:
        """Render the runner-facing configuration of the indexer."""
        return {
            "streamUrl": self.stream.stream_url,
            "startingBlock": self.stream.starting_block,
            "network": self.stream.network,
            "finality": self.stream.finality,
            "filter": self.filter.to_dict(),
            "sinkType": self.sink.sink_type,
            "sinkOptions": {"tableName": self.sink.table_name},
        }

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Starknet Transfer Indexer Configuration")
        logger.info("=" * 60)

        logger.info("Stream:")
        logger.info(f"  URL: {self.stream.stream_url}")
        logger.info(f"  Starting Block: {self.stream.starting_block}")
        logger.info(f"  Finality: {self.stream.finality}")

        logger.info("Filter:")
        logger.info(f"  Contract: {self.filter.contract_address}")
        logger.info(f"  Event: {self.filter.event_name} ({self.filter.selector})")

        logger.info("Token:")
        logger.info(f"  Network: {self.token.network_label}")
        logger.info(f"  Symbol: {self.token.symbol}")
        logger.info(f"  Decimals: {self.token.decimals}")

        logger.info("Node RPC:")
        logger.info(f"  URL: {self.node_rpc.rpc_url}")
        logger.info(f"  Spec Version Method: {self.node_rpc.spec_version_method}")
        logger.info(f"  Request Timeout: {self.node_rpc.request_timeout} seconds")

        logger.info("Sink:")
        logger.info(f"  Type: {self.sink.sink_type}")
        logger.info(f"  Table: {self.sink.table_name}")

        logger.info("=" * 60)
