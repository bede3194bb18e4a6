import logging
import threading
from typing import List

from .collectors import Collector

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 5.0


class Poller:
    def __init__(self, collectors: List[Collector], interval_seconds: float = POLL_INTERVAL_SECONDS) -> None:
        if not collectors:
            raise ValueError("Poller needs at least one collector")
        self.collectors = collectors
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="poller", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=5)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def tick(self) -> None:
        # Collectors are independent; each handles its own RPC failures.
        for collector in self.collectors:
            collector.collect()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Poll tick failed")
            self._stop.wait(self.interval_seconds)
