"""
Fixed-delay scheduling of change detectors on a shared worker pool.

Each detector runs immediately when started, then again ``period_ms`` after
the previous run finished. Runs of one detector never overlap; different
detectors run independently of each other.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from hotswap_monitor.config.settings import MIN_PERIOD_MS, clamp_period
from hotswap_monitor.core.interfaces import IChangeDetector, IErrorSink
from hotswap_monitor.models import MonitoringError
from hotswap_monitor.monitoring.dispatch import LoggingErrorSink, report_safely

logger = logging.getLogger(__name__)

MIN_WORKERS = 2


class ScheduledMonitor:
    """One detector's periodic task. Created by ``MonitorScheduler.start``."""

    def __init__(
        self,
        detector: IChangeDetector,
        period_ms: int,
        executor: ThreadPoolExecutor,
        error_sink: IErrorSink,
    ):
        self.detector = detector
        self.period_ms = period_ms
        self._executor = executor
        self._error_sink = error_sink

        self._lock = threading.Lock()
        self._runs = threading.Condition(self._lock)
        self._timer: threading.Timer | None = None
        self._future: Future | None = None
        self._stopped = False
        self._run_count = 0

    @property
    def run_count(self) -> int:
        with self._lock:
            return self._run_count

    @property
    def is_stopped(self) -> bool:
        with self._lock:
            return self._stopped

    def stop(self) -> None:
        """Prevent any further run from starting. A run in progress completes."""
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._runs.notify_all()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the run in progress, if any, to finish."""
        with self._lock:
            future = self._future
        if future is not None:
            try:
                future.result(timeout=timeout)
            except TimeoutError:
                logger.warning("Timed out waiting for %s to finish its scan", self.detector.name)

    def wait_for_runs(self, count: int, timeout: float | None = None) -> bool:
        """
        Block until at least ``count`` runs have completed.

        Returns:
            True if the count was reached, False on timeout or stop
        """
        with self._runs:
            self._runs.wait_for(lambda: self._run_count >= count or self._stopped, timeout=timeout)
            return self._run_count >= count

    def _submit(self) -> None:
        with self._lock:
            self._timer = None
            if self._stopped:
                return
            try:
                self._future = self._executor.submit(self._run)
            except RuntimeError:
                # Pool already shut down
                logger.debug("Worker pool closed, not scheduling %s again", self.detector.name)
                self._stopped = True
                self._runs.notify_all()

    def _run(self) -> None:
        try:
            self.detector.scan()
        except Exception as e:
            report_safely(
                self._error_sink,
                MonitoringError(
                    f"Scan of {self.detector.name} failed: {e}",
                    path=self.detector.name,
                    operation="scan",
                    underlying_error=e,
                ),
            )
        finally:
            with self._lock:
                self._run_count += 1
                self._runs.notify_all()
                if not self._stopped:
                    self._timer = threading.Timer(self.period_ms / 1000.0, self._submit)
                    self._timer.daemon = True
                    self._timer.start()

    def __repr__(self) -> str:
        return f"ScheduledMonitor({self.detector.name!r}, period_ms={self.period_ms}, runs={self._run_count})"


class MonitorScheduler:
    """
    Runs detectors periodically on a shared thread pool.

    Example:
        scheduler = MonitorScheduler()
        scheduler.start(FileMonitor("/project/classes", "class"), period_ms=1000)
        ...
        scheduler.shutdown()
    """

    def __init__(self, worker_count: int = MIN_WORKERS, error_sink: IErrorSink | None = None):
        """
        Initialize the scheduler.

        Args:
            worker_count: Pool size; raised to 2 if smaller
            error_sink: Receives failures of detector runs (logged if not provided)
        """
        self.worker_count = max(MIN_WORKERS, int(worker_count))
        self._error_sink = error_sink or LoggingErrorSink()
        self._executor = ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="hotswap-monitor")
        self._lock = threading.Lock()
        self._scheduled: dict[IChangeDetector, ScheduledMonitor] = {}
        self._shut_down = False

    def start(self, detector: IChangeDetector, period_ms: int = MIN_PERIOD_MS) -> ScheduledMonitor:
        """
        Schedule a detector: one run now, then one every ``period_ms`` after the previous finished.

        Raises:
            MonitoringError: If the scheduler was shut down or the detector is already scheduled
        """
        period = clamp_period(period_ms)
        if period != period_ms:
            logger.debug("Polling period %r clamped to %d ms", period_ms, period)

        with self._lock:
            if self._shut_down:
                raise MonitoringError(
                    "Scheduler has been shut down", path=detector.name, operation="start"
                )
            if detector in self._scheduled and not self._scheduled[detector].is_stopped:
                raise MonitoringError(
                    f"Detector {detector.name} is already scheduled", path=detector.name, operation="start"
                )
            task = ScheduledMonitor(detector, period, self._executor, self._error_sink)
            self._scheduled[detector] = task

        task._submit()
        logger.info("Scheduled %s every %d ms", detector.name, period)
        return task

    def stop(self, detector: IChangeDetector) -> bool:
        """
        Stop scheduling a detector.

        Returns:
            True if the detector was scheduled
        """
        with self._lock:
            task = self._scheduled.pop(detector, None)
        if task is None:
            return False
        task.stop()
        logger.info("Stopped scheduling %s", detector.name)
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop every detector and release the worker pool."""
        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True
            tasks = list(self._scheduled.values())
            self._scheduled.clear()

        for task in tasks:
            task.stop()
        self._executor.shutdown(wait=wait)
        logger.info("Scheduler shut down (%d detector(s) stopped)", len(tasks))

    def is_scheduled(self, detector: IChangeDetector) -> bool:
        with self._lock:
            task = self._scheduled.get(detector)
        return task is not None and not task.is_stopped

    @property
    def scheduled_count(self) -> int:
        with self._lock:
            return len(self._scheduled)

    @property
    def is_shut_down(self) -> bool:
        with self._lock:
            return self._shut_down

    def __enter__(self) -> "MonitorScheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
