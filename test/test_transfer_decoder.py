#!/usr/bin/env python3
"""Unit tests for the TransferDecoder module."""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from starknet_transfers.config import IndexerConfig, TokenConfig
from starknet_transfers.errors import MalformedEventError, MetadataFetchError
from starknet_transfers.models import BlockHeader, RawEvent
from starknet_transfers.transfer_decoder import TransferDecoder
from starknet_transfers.utils.node_rpc_utility import NodeRpcUtility

TX_HASH = "0x05b6c1a0c7b3cda5a3f1d5e1d2e3c4b5a69788796a5b4c3d2e1f0a9b8c7d6e5f"


def make_rpc(spec_version="0.7.1"):
    """Create a mocked node RPC utility."""
    rpc = MagicMock(spec=NodeRpcUtility)
    rpc.fetch_spec_version = AsyncMock(return_value=spec_version)
    return rpc


def make_decoder(decimals=18, rpc=None):
    """Create a TransferDecoder with the given token decimals."""
    config = IndexerConfig(token=TokenConfig(decimals=decimals))
    return TransferDecoder(config, rpc=rpc or make_rpc())


@pytest.fixture
def header():
    """Create a sample block header."""
    return BlockHeader(
        block_number=200123,
        block_hash="0x04a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f",
        timestamp="2024-01-01T00:00:00Z"
    )


@pytest.fixture
def one_eth_event():
    """Create a transfer of exactly 1 ETH."""
    return RawEvent(
        data=("0xabc", "0xdef", "1000000000000000000", "0"),
        index=0,
        transaction_hash=TX_HASH
    )


class TestTransferDecoder:
    """Test suite for TransferDecoder functionality."""

    @pytest.mark.asyncio
    async def test_decode_one_eth(self, header, one_eth_event):
        """Test the canonical 1 ETH transfer."""
        decoder = make_decoder()

        records = await decoder.transform(header, [one_eth_event])

        assert len(records) == 1
        record = records[0]
        assert record.amount_raw == "1000000000000000000"
        assert record.amount == 1
        assert record.from_address == "0xabc"
        assert record.to_address == "0xdef"
        assert record.network == "starknet-sepolia"
        assert record.symbol == "ETH"
        assert record.block_hash == header.block_hash
        assert record.block_number == 200123
        assert record.block_timestamp == "2024-01-01T00:00:00Z"
        assert record.transaction_hash == TX_HASH
        assert record.transfer_id == f"{TX_HASH}_0"
        assert record.spec_version == "0.7.1"

    @pytest.mark.asyncio
    async def test_high_limb_reconstruction(self, header):
        """A non-zero high limb yields the full 256-bit amount."""
        decoder = make_decoder()
        event = RawEvent(data=("0xabc", "0xdef", "0", "1"), index=0, transaction_hash=TX_HASH)

        records = await decoder.transform(header, [event])

        assert records[0].amount_raw == "340282366920938463463374607431768211456"
        assert records[0].amount == pytest.approx(2 ** 128 / 10 ** 18)

    @pytest.mark.asyncio
    async def test_max_amount_keeps_precision(self, header):
        limb = hex(2 ** 128 - 1)
        event = RawEvent(data=("0xabc", "0xdef", limb, limb), index=0, transaction_hash=TX_HASH)

        records = await make_decoder().transform(header, [event])

        assert records[0].amount_raw == str(2 ** 256 - 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decimals, raw, expected", [
        (0, "42", 42.0),
        (6, "1234567", 1.234567),
        (18, "1500000000000000000", 1.5),
    ])
    async def test_amount_scaling(self, header, decimals, raw, expected):
        """amount is amount_raw / 10**decimals."""
        decoder = make_decoder(decimals=decimals)
        event = RawEvent(data=("0xabc", "0xdef", raw, "0"), index=0, transaction_hash=TX_HASH)

        records = await decoder.transform(header, [event])

        assert records[0].amount_raw == raw
        assert records[0].amount == expected
        assert isinstance(records[0].amount, float)

    @pytest.mark.asyncio
    async def test_order_and_length_preserved(self, header):
        events = [
            RawEvent(data=("0xa", "0xb", str(i), "0"), index=i, transaction_hash=TX_HASH)
            for i in (4, 1, 7, 2)
        ]

        records = await make_decoder().transform(header, events)

        assert len(records) == len(events)
        assert [r.amount_raw for r in records] == ["4", "1", "7", "2"]
        assert [r.transfer_id for r in records] == [
            f"{TX_HASH}_4", f"{TX_HASH}_1", f"{TX_HASH}_7", f"{TX_HASH}_2"
        ]

    @pytest.mark.asyncio
    async def test_transfer_ids_unique_within_transaction(self, header):
        events = [
            RawEvent(data=("0xa", "0xb", "1", "0"), index=i, transaction_hash=TX_HASH)
            for i in range(5)
        ]

        records = await make_decoder().transform(header, events)

        ids = [r.transfer_id for r in records]
        assert len(set(ids)) == len(ids)

    @pytest.mark.asyncio
    async def test_deterministic_across_invocations(self, header, one_eth_event):
        decoder = make_decoder()

        first = await decoder.transform(header, [one_eth_event])
        second = await decoder.transform(header, [one_eth_event])

        assert first == second
        assert first[0].transfer_id == second[0].transfer_id

    @pytest.mark.asyncio
    async def test_spec_version_fetched_once(self, header):
        """One metadata request per block, shared by every record."""
        rpc = make_rpc("0.8.0")
        decoder = make_decoder(rpc=rpc)
        events = [
            RawEvent(data=("0xa", "0xb", "1", "0"), index=i, transaction_hash=TX_HASH)
            for i in range(3)
        ]

        records = await decoder.transform(header, events)

        rpc.fetch_spec_version.assert_awaited_once()
        assert {r.spec_version for r in records} == {"0.8.0"}

    @pytest.mark.asyncio
    async def test_empty_block(self, header):
        rpc = make_rpc()
        decoder = make_decoder(rpc=rpc)

        records = await decoder.transform(header, [])

        assert records == []
        rpc.fetch_spec_version.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_failure_emits_nothing(self, header, one_eth_event):
        rpc = make_rpc()
        rpc.fetch_spec_version = AsyncMock(side_effect=MetadataFetchError("node unavailable"))
        decoder = make_decoder(rpc=rpc)

        with pytest.raises(MetadataFetchError, match="node unavailable"):
            await decoder.transform(header, [one_eth_event])

        assert decoder.blocks_failed == 1
        assert decoder.transfers_decoded == 0

    @pytest.mark.asyncio
    async def test_short_payload_fails_block(self, header, one_eth_event):
        bad_event = RawEvent(data=("0xa", "0xb", "1"), index=1, transaction_hash=TX_HASH)
        decoder = make_decoder()

        with pytest.raises(MalformedEventError, match="expected at least 4"):
            await decoder.transform(header, [one_eth_event, bad_event])

        assert decoder.blocks_failed == 1
        assert decoder.blocks_processed == 0

    @pytest.mark.asyncio
    async def test_oversized_limb_fails_block(self, header):
        bad_event = RawEvent(
            data=("0xa", "0xb", hex(2 ** 128), "0"), index=0, transaction_hash=TX_HASH
        )

        with pytest.raises(MalformedEventError, match="Invalid amount"):
            await make_decoder().transform(header, [bad_event])

    @pytest.mark.asyncio
    async def test_extra_fields_ignored(self, header):
        event = RawEvent(
            data=("0xa", "0xb", "5", "0", "0xextra"), index=0, transaction_hash=TX_HASH
        )

        records = await make_decoder().transform(header, [event])

        assert records[0].amount_raw == "5"

    @pytest.mark.asyncio
    async def test_transform_block(self):
        """Test the stream wire format end to end."""
        decoder = make_decoder()
        payload = {
            "header": {
                "blockNumber": "0x30dbb",
                "blockHash": "0x04a1",
                "timestamp": "2024-01-01T00:00:00Z"
            },
            "events": [
                {
                    "event": {"data": ["0xabc", "0xdef", "1000000000000000000", "0"], "index": 2},
                    "receipt": {"transactionHash": TX_HASH}
                }
            ]
        }

        records = await decoder.transform_block(payload)

        assert records == [{
            "network": "starknet-sepolia",
            "symbol": "ETH",
            "block_hash": "0x04a1",
            "block_number": 200123,
            "block_timestamp": "2024-01-01T00:00:00Z",
            "transaction_hash": TX_HASH,
            "transfer_id": f"{TX_HASH}_2",
            "from_address": "0xabc",
            "to_address": "0xdef",
            "amount": 1.0,
            "amount_raw": "1000000000000000000",
            "spec_version": "0.7.1",
        }]

    @pytest.mark.asyncio
    async def test_transform_block_missing_header(self):
        with pytest.raises(ValueError, match="no header"):
            await make_decoder().transform_block({"events": []})

    @pytest.mark.asyncio
    async def test_transform_block_missing_receipt(self):
        rpc = make_rpc()
        decoder = make_decoder(rpc=rpc)
        payload = {
            "header": {"blockNumber": 1, "blockHash": "0x1", "timestamp": "t"},
            "events": [{"event": {"data": ["0xa", "0xb", "1", "0"], "index": 0}}]
        }

        with pytest.raises(MalformedEventError):
            await decoder.transform_block(payload)

        rpc.fetch_spec_version.assert_not_awaited()

    def test_default_rpc_from_config(self):
        """The RPC utility is built from the node config when not injected."""
        config = IndexerConfig()
        decoder = TransferDecoder(config)

        assert isinstance(decoder.rpc, NodeRpcUtility)
        assert decoder.rpc.rpc_url == config.node_rpc.rpc_url
        assert decoder.rpc.spec_version_method == "starknet_specVersion"
        assert decoder.rpc.timeout == 30.0

    @pytest.mark.asyncio
    async def test_metrics_tracking(self, header, one_eth_event, caplog):
        decoder = make_decoder()

        await decoder.transform(header, [one_eth_event, one_eth_event])
        await decoder.transform(header, [one_eth_event])

        metrics = decoder.get_metrics()
        assert metrics == {
            "blocks_processed": 2,
            "blocks_failed": 0,
            "transfers_decoded": 3
        }

        with caplog.at_level(logging.INFO):
            decoder.log_metrics()
        assert "Blocks=2" in caplog.text
        assert "Transfers=3" in caplog.text
