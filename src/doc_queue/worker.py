"""
Interval-driven runner for deployments without an external scheduler.
"""

import logging
import signal
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .engine import QueueEngine
from .models import BatchResult, CleanupResult

logger = logging.getLogger(__name__)


class QueueWorker:
    """
    Calls ``process_next_batch`` and ``cleanup`` on fixed intervals.

    Each operation gets its own thread. A tick that raises is logged and the
    loop carries on with the next tick.
    """

    def __init__(self, engine: QueueEngine, process_interval: float = 5.0,
                 cleanup_interval: Optional[float] = 3600.0):
        """
        Initialize queue worker.

        Args:
            engine: Queue engine to drive
            process_interval: Seconds between batch ticks
            cleanup_interval: Seconds between cleanup ticks; None disables cleanup
        """
        self.engine = engine
        self.process_interval = process_interval
        self.cleanup_interval = cleanup_interval
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._stats_lock = threading.Lock()

        self.stats: Dict[str, Any] = {
            "batches_run": 0,
            "batches_skipped": 0,
            "records_done": 0,
            "records_retried": 0,
            "records_failed": 0,
            "records_removed": 0,
            "tick_errors": 0,
            "start_time": None,
            "end_time": None
        }

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self, install_signal_handlers: bool = False) -> None:
        """Start the ticker threads and return immediately."""
        if self.running:
            logger.warning("Queue worker already running; ignoring start")
            return

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        self._stop.clear()
        self.stats["start_time"] = time.time()

        self._spawn("process-ticker", self.process_interval, self._process_tick)
        if self.cleanup_interval:
            self._spawn("cleanup-ticker", self.cleanup_interval, self._cleanup_tick)

        logger.info(f"Queue worker started (process every {self.process_interval}s, "
                    f"cleanup every {self.cleanup_interval}s)")

    def run_forever(self) -> Dict[str, Any]:
        """Start with signal handlers and block until stopped."""
        self.start(install_signal_handlers=True)
        try:
            while self.running:
                self._stop.wait(0.5)
        finally:
            self.stop()
        return self.stats

    def stop(self, timeout: float = 30.0) -> None:
        """Request shutdown and wait for in-flight ticks to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        self.stats["end_time"] = time.time()
        logger.info("Queue worker stopped")

    def _spawn(self, name: str, interval: float, tick: Callable[[], None]) -> None:
        def loop():
            while not self._stop.is_set():
                try:
                    tick()
                except Exception as e:
                    with self._stats_lock:
                        self.stats["tick_errors"] += 1
                    logger.error(f"{name} tick failed: {str(e)}")
                self._stop.wait(interval)

        thread = threading.Thread(target=loop, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _process_tick(self) -> None:
        result: BatchResult = self.engine.process_next_batch()
        with self._stats_lock:
            if result.skipped:
                self.stats["batches_skipped"] += 1
                return
            self.stats["batches_run"] += 1
            self.stats["records_done"] += result.done
            self.stats["records_retried"] += result.retried
            self.stats["records_failed"] += result.failed

    def _cleanup_tick(self) -> None:
        result: CleanupResult = self.engine.cleanup()
        with self._stats_lock:
            self.stats["records_removed"] += result.removed

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        logger.info(f"Queue worker received {signal_name} signal")
        self._stop.set()
