#!/usr/bin/env python3
"""Exception types raised by the transfer indexer.

Both errors are fatal for the block being transformed: the caller receives
the exception and no records are emitted for that block.
"""


class TransferIndexerError(Exception):
    """Base class for transfer indexer failures."""


class MetadataFetchError(TransferIndexerError):
    """The chain metadata (spec version) request failed or returned garbage."""


class MalformedEventError(TransferIndexerError):
    """A raw event does not have the shape of a token transfer."""
