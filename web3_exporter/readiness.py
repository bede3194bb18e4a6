import logging
from dataclasses import dataclass
from typing import Optional

from .collectors import Reading, read_block_gap, read_remaining_blocks
from .rpc import RPCClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_REMAINING_BLOCKS = 10

READY_BODY = "OK"
NOT_READY_BODY = "error: syncing"


@dataclass(frozen=True)
class Verdict:
    ready: bool
    reason: str

    @property
    def status(self) -> int:
        return 200 if self.ready else 500

    @property
    def body(self) -> str:
        return READY_BODY if self.ready else NOT_READY_BODY


def evaluate(remaining: Reading, gap: Optional[Reading], threshold: int = DEFAULT_MAX_REMAINING_BLOCKS) -> Verdict:
    """Decide readiness from fresh readings.

    `remaining` is mandatory: a failed read is not ready. `gap` is None when
    the block-gap signal is disabled; a failed gap read counts as no gap.
    Ready iff remaining <= threshold and gap == 0.
    """
    if remaining.is_failed:
        return Verdict(False, f"sync progress unavailable: {remaining.error}")

    gap_size = 0.0
    if gap is not None and not gap.is_failed:
        gap_size = gap.value

    if remaining.value > threshold:
        return Verdict(False, f"remaining blocks {remaining.value:.0f} > threshold {threshold}")
    if gap_size > 0:
        return Verdict(False, f"block gap {gap_size:.0f}")
    return Verdict(True, f"remaining blocks {remaining.value:.0f} <= threshold {threshold}")


class ReadinessProbe:
    """Answers readiness with live RPC reads; never uses the polled gauges."""

    def __init__(self, client: RPCClient, threshold: int = DEFAULT_MAX_REMAINING_BLOCKS, enable_block_gap: bool = False) -> None:
        self.client = client
        self.threshold = threshold
        self.enable_block_gap = enable_block_gap

    def check(self) -> Verdict:
        remaining = read_remaining_blocks(self.client)

        gap: Optional[Reading] = None
        if self.enable_block_gap and not remaining.is_failed:
            gap = read_block_gap(self.client)
            if gap.is_failed:
                logger.warning("Error getting chain status, assuming no block gap: %s", gap.error)

        verdict = evaluate(remaining, gap, self.threshold)
        if not verdict.ready:
            logger.info("Not ready: %s", verdict.reason)
        return verdict
