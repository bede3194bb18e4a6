import logging
from dataclasses import dataclass
from typing import List, Optional

from prometheus_client import CollectorRegistry, Gauge

from .rpc import RPCClient, RPCError

logger = logging.getLogger(__name__)

# Written to a gauge when the last collection attempt failed. Dashboards and
# alerts key on this exact value, so it must never be a real reading.
SENTINEL = -1.0

PEER_COUNT = "web3_net_peerCount"
SYNC_REMAINING = "web3_eth_syncing_remaining_blocks"
BLOCK_GAP = "web3_block_gap"


@dataclass(frozen=True)
class Reading:
    """Outcome of one collection attempt: a value, or a failure with its error."""

    value: float = 0.0
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: float) -> "Reading":
        return cls(value=float(value))

    @classmethod
    def failed(cls, error: BaseException) -> "Reading":
        return cls(error=error)

    @property
    def is_failed(self) -> bool:
        return self.error is not None

    def gauge_value(self) -> float:
        return SENTINEL if self.is_failed else self.value


class NodeGauges:
    """Gauges for one monitored node, registered once in their own registry."""

    def __init__(self, enable_block_gap: bool = False, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.peer_count = Gauge(PEER_COUNT, "The number of connected peers", registry=self.registry)
        self.sync_remaining = Gauge(SYNC_REMAINING, "Blocks remaining to sync", registry=self.registry)
        self.block_gap: Optional[Gauge] = None
        if enable_block_gap:
            self.block_gap = Gauge(BLOCK_GAP, "Block gap, the remaining warp sync blocks", registry=self.registry)


def read_peer_count(client: RPCClient) -> Reading:
    try:
        return Reading.ok(client.peer_count())
    except RPCError as e:
        return Reading.failed(e)


def read_remaining_blocks(client: RPCClient) -> Reading:
    """Blocks left to sync; 0 when the node reports it is not syncing."""
    try:
        progress = client.sync_progress()
    except RPCError as e:
        return Reading.failed(e)
    if progress is None:
        return Reading.ok(0)
    return Reading.ok(progress.remaining_blocks)


def read_block_gap(client: RPCClient) -> Reading:
    try:
        return Reading.ok(client.chain_status().gap_size)
    except RPCError as e:
        return Reading.failed(e)


class Collector:
    name = ""
    # When set, a failed read leaves the previous gauge value in place.
    keep_on_failure = False

    def __init__(self, client: RPCClient, gauge: Gauge) -> None:
        self.client = client
        self.gauge = gauge

    def read(self) -> Reading:
        raise NotImplementedError

    def collect(self) -> Reading:
        reading = self.read()
        if reading.is_failed:
            logger.warning("Collecting %s failed: %s", self.name, reading.error)
            if self.keep_on_failure:
                return reading
        self.gauge.set(reading.gauge_value())
        return reading


class PeerCountCollector(Collector):
    name = PEER_COUNT

    def read(self) -> Reading:
        return read_peer_count(self.client)


class SyncCollector(Collector):
    name = SYNC_REMAINING

    def read(self) -> Reading:
        return read_remaining_blocks(self.client)


class BlockGapCollector(Collector):
    name = BLOCK_GAP
    # parity_chainStatus only exists on Parity/OpenEthereum.
    keep_on_failure = True

    def read(self) -> Reading:
        return read_block_gap(self.client)


def build_collectors(client: RPCClient, gauges: NodeGauges) -> List[Collector]:
    """Collectors in tick order: block gap (if registered), sync, peers."""
    collectors: List[Collector] = []
    if gauges.block_gap is not None:
        collectors.append(BlockGapCollector(client, gauges.block_gap))
    collectors.append(SyncCollector(client, gauges.sync_remaining))
    collectors.append(PeerCountCollector(client, gauges.peer_count))
    return collectors
