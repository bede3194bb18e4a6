"""Tests for metric collectors and the sentinel policy."""
import pytest
import requests

from web3_exporter.collectors import (
    BLOCK_GAP,
    PEER_COUNT,
    SENTINEL,
    SYNC_REMAINING,
    BlockGapCollector,
    NodeGauges,
    PeerCountCollector,
    Reading,
    SyncCollector,
    build_collectors,
)
from web3_exporter.rpc import RPCTransportError


@pytest.fixture
def gauges():
    return NodeGauges(enable_block_gap=True)


def sample(gauges, name):
    return gauges.registry.get_sample_value(name)


class TestReading:
    def test_ok(self):
        r = Reading.ok(7)
        assert not r.is_failed
        assert r.gauge_value() == 7.0

    def test_failed_flattens_to_sentinel(self):
        r = Reading.failed(RPCTransportError("timeout"))
        assert r.is_failed
        assert r.gauge_value() == SENTINEL == -1.0

    def test_zero_is_not_failure(self):
        assert Reading.ok(0).gauge_value() == 0.0


class TestNodeGauges:
    def test_block_gap_registered_only_when_enabled(self):
        plain = NodeGauges()
        assert plain.block_gap is None
        assert plain.registry.get_sample_value(BLOCK_GAP) is None
        assert plain.registry.get_sample_value(PEER_COUNT) == 0.0
        assert plain.registry.get_sample_value(SYNC_REMAINING) == 0.0

    def test_separate_registries_do_not_collide(self):
        NodeGauges()
        NodeGauges()


class TestPeerCountCollector:
    def test_writes_decoded_count(self, client, gauges):
        reading = PeerCountCollector(client, gauges.peer_count).collect()
        assert reading.value == 25
        assert sample(gauges, PEER_COUNT) == 25.0

    def test_timeout_writes_sentinel_and_nothing_else(self, client, node, gauges):
        gauges.sync_remaining.set(7)
        gauges.block_gap.set(3)
        node.failures["net_peerCount"] = requests.Timeout("read timed out")

        reading = PeerCountCollector(client, gauges.peer_count).collect()

        assert reading.is_failed
        assert sample(gauges, PEER_COUNT) == -1.0
        assert sample(gauges, SYNC_REMAINING) == 7.0
        assert sample(gauges, BLOCK_GAP) == 3.0

    def test_bad_hex_writes_sentinel(self, client, node, gauges):
        node.results["net_peerCount"] = "25"
        PeerCountCollector(client, gauges.peer_count).collect()
        assert sample(gauges, PEER_COUNT) == -1.0

    def test_recovers_after_failure(self, client, node, gauges):
        collector = PeerCountCollector(client, gauges.peer_count)
        node.failures["net_peerCount"] = requests.ConnectionError("refused")
        collector.collect()
        del node.failures["net_peerCount"]
        collector.collect()
        assert sample(gauges, PEER_COUNT) == 25.0


class TestSyncCollector:
    def test_not_syncing_is_zero(self, client, gauges):
        gauges.sync_remaining.set(42)
        reading = SyncCollector(client, gauges.sync_remaining).collect()
        assert not reading.is_failed
        assert sample(gauges, SYNC_REMAINING) == 0.0

    def test_remaining_blocks(self, client, node, gauges):
        node.set_syncing(100, 115)
        SyncCollector(client, gauges.sync_remaining).collect()
        assert sample(gauges, SYNC_REMAINING) == 15.0

    def test_caught_up_while_syncing(self, client, node, gauges):
        node.set_syncing(200, 200)
        SyncCollector(client, gauges.sync_remaining).collect()
        assert sample(gauges, SYNC_REMAINING) == 0.0

    def test_failure_writes_sentinel(self, client, node, gauges):
        node.failures["eth_syncing"] = requests.ConnectionError("refused")
        SyncCollector(client, gauges.sync_remaining).collect()
        assert sample(gauges, SYNC_REMAINING) == -1.0


class TestBlockGapCollector:
    def test_gap(self, client, node, gauges):
        node.results["parity_chainStatus"] = {"blockGap": ["0x32", "0x34"]}
        BlockGapCollector(client, gauges.block_gap).collect()
        assert sample(gauges, BLOCK_GAP) == 2.0

    def test_malformed_gap_is_zero(self, client, node, gauges):
        gauges.block_gap.set(9)
        node.results["parity_chainStatus"] = {"blockGap": ["0x32"]}
        reading = BlockGapCollector(client, gauges.block_gap).collect()
        assert not reading.is_failed
        assert sample(gauges, BLOCK_GAP) == 0.0

    def test_failure_keeps_previous_value(self, client, gauges):
        gauges.block_gap.set(4)
        # parity_chainStatus is not in the fake node's results: method not found.
        reading = BlockGapCollector(client, gauges.block_gap).collect()
        assert reading.is_failed
        assert sample(gauges, BLOCK_GAP) == 4.0

    def test_inverted_gap_keeps_previous_value(self, client, node, gauges):
        gauges.block_gap.set(4)
        node.results["parity_chainStatus"] = {"blockGap": ["0x34", "0x32"]}
        reading = BlockGapCollector(client, gauges.block_gap).collect()
        assert reading.is_failed
        assert sample(gauges, BLOCK_GAP) == 4.0


class TestBuildCollectors:
    def test_order_with_block_gap(self, client, gauges):
        kinds = [type(c) for c in build_collectors(client, gauges)]
        assert kinds == [BlockGapCollector, SyncCollector, PeerCountCollector]

    def test_without_block_gap(self, client):
        kinds = [type(c) for c in build_collectors(client, NodeGauges())]
        assert kinds == [SyncCollector, PeerCountCollector]
