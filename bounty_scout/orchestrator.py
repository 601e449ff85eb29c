from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from .base import BaseScanner
from .funnel import Funnel
from .metrics import OUTCOMES, MetricsCollector
from .models import CandidateRecord

logger = logging.getLogger(__name__)

PUT_TIMEOUT = 0.5
GET_TIMEOUT = 0.5


class Orchestrator:
    """Runs scan cycles and feeds one shared queue into the funnel.

    Producers: one pool thread per adapter, draining scanner.run(). They
    block on a full queue instead of dropping, but re-check the cancel token
    between attempts so a stopped consumer never hangs them.

    Consumer: a single thread that funnels records as they arrive, so
    processing is never gated on a cycle finishing. Once cancelled it stops at
    the next record and leaves the rest of the queue unprocessed.
    """

    def __init__(
        self,
        scanners: Sequence[BaseScanner],
        funnel: Funnel,
        queue_size: int = 100,
        poll_interval: float = 60,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._scanners: List[BaseScanner] = list(scanners)
        self._funnel = funnel
        self._queue: queue.Queue[Optional[CandidateRecord]] = queue.Queue(maxsize=max(queue_size, 1))
        self._poll_interval = poll_interval if poll_interval > 0 else 60
        self._metrics = metrics or funnel.metrics
        self._cycles = 0

    @property
    def cycles(self) -> int:
        return self._cycles

    def run_forever(self, cancel: threading.Event) -> None:
        consumer = self._start_consumer(cancel)
        logger.info("Starting scan loop with %d scanners, every %ss", len(self._scanners), self._poll_interval)
        try:
            while not cancel.is_set():
                self.run_cycle(cancel)
                if cancel.wait(self._poll_interval):
                    break
        finally:
            self._stop_consumer(consumer, cancel)
        logger.info("Scan loop stopped after %d cycles", self._cycles)

    def run_once(self, cancel: Optional[threading.Event] = None) -> Dict[str, int]:
        """Run a single cycle and wait until every queued record is funneled."""
        cancel = cancel or threading.Event()
        consumer = self._start_consumer(cancel)
        before = self._metrics.totals()
        try:
            self.run_cycle(cancel)
        finally:
            self._stop_consumer(consumer, cancel)
        after = self._metrics.totals()
        return {outcome: after.get(outcome, 0) - before.get(outcome, 0) for outcome in OUTCOMES}

    def run_cycle(self, cancel: threading.Event) -> int:
        """Run every adapter in parallel; returns once all of them finished."""
        if not self._scanners:
            logger.warning("No scanners enabled")
            return 0

        started = time.monotonic()
        self._cycles += 1
        with ThreadPoolExecutor(max_workers=len(self._scanners), thread_name_prefix="scanner") as pool:
            futures = [pool.submit(self._produce, scanner, cancel) for scanner in self._scanners]
            try:
                produced = sum(future.result() for future in futures)
            except BaseException:
                # pool shutdown joins the producers; they only stop early once cancelled
                cancel.set()
                raise

        snapshot = self._metrics.snapshot()
        logger.info(
            "Cycle %d finished in %.1fs: %d records queued; totals %s",
            self._cycles,
            time.monotonic() - started,
            produced,
            snapshot.summary(),
        )
        return produced

    def _produce(self, scanner: BaseScanner, cancel: threading.Event) -> int:
        count = 0
        for record in scanner.run(cancel):
            if not self._put(record, cancel):
                break
            count += 1
        logger.debug("%s: queued %d records", scanner.name, count)
        return count

    def _put(self, record: CandidateRecord, cancel: threading.Event) -> bool:
        while True:
            try:
                self._queue.put(record, timeout=PUT_TIMEOUT)
                return True
            except queue.Full:
                if cancel.is_set():
                    return False

    def _start_consumer(self, cancel: threading.Event) -> threading.Thread:
        thread = threading.Thread(target=self._consume, args=(cancel,), name="funnel-consumer", daemon=True)
        thread.start()
        return thread

    def _stop_consumer(self, consumer: threading.Thread, cancel: threading.Event) -> None:
        if not cancel.is_set():
            self._queue.put(None)
        consumer.join()

    def _consume(self, cancel: threading.Event) -> None:
        while True:
            try:
                record = self._queue.get(timeout=GET_TIMEOUT)
            except queue.Empty:
                if cancel.is_set():
                    return
                continue
            if record is None or cancel.is_set():
                return
            try:
                self._funnel.process(record)
            except Exception as exc:  # noqa: BLE001
                logger.error("Funnel failed on %s: %s", record.source_url, exc)
