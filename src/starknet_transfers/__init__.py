"""
Starknet transfer indexer.

Decodes a block's token Transfer events into normalized records for the sink.
"""

from .config import IndexerConfig
from .errors import MalformedEventError, MetadataFetchError
from .models import BlockHeader, RawEvent, TransferRecord
from .transfer_decoder import TransferDecoder

__all__ = [
    "IndexerConfig",
    "TransferDecoder",
    "BlockHeader",
    "RawEvent",
    "TransferRecord",
    "MetadataFetchError",
    "MalformedEventError",
]
__version__ = "0.1.0"
