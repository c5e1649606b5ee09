"""
Monitoring coordinator for code reloading.

Wires a class-file monitor and an optional archive monitor to a change handler
and runs both on a scheduler, so a running process is told about rebuilt
classes as soon as they land on disk.
"""

import logging
import threading
from collections.abc import Iterable
from typing import Any

from hotswap_monitor.config import MonitorConfig
from hotswap_monitor.core.interfaces import IChangeHandler, IErrorSink, IFileSystem
from hotswap_monitor.models import ArchiveEntryChangeEvent, BaseError, ConfigurationError, FileChangeEvent
from hotswap_monitor.monitoring.dispatch import LoggingErrorSink
from hotswap_monitor.monitoring.file_monitor import FileMonitor
from hotswap_monitor.monitoring.jar_monitor import JarMonitor
from hotswap_monitor.monitoring.scheduler import MonitorScheduler

logger = logging.getLogger(__name__)

MAX_RECORDED_ERRORS = 100


class _CountingErrorSink(IErrorSink):
    """Forwards to another sink and lets the coordinator record the error."""

    def __init__(self, target: IErrorSink, record):
        self._target = target
        self._record = record

    def report(self, error: BaseError) -> None:
        self._record(error)
        self._target.report(error)


class MonitoringCoordinator:
    """
    Coordinates the monitors, the scheduler and the change handler.

    Only modifications are forwarded to the handler: a class that was just
    added has nothing loaded to replace, and a deleted one cannot be reloaded.
    """

    def __init__(
        self,
        config: MonitorConfig,
        handler: IChangeHandler,
        scheduler: MonitorScheduler | None = None,
        filesystem: IFileSystem | None = None,
        error_sink: IErrorSink | None = None,
    ):
        """
        Initialize the monitoring coordinator.

        Args:
            config: Monitor configuration
            handler: Action taken for each modified class or archive entry
            scheduler: Optional scheduler (one sized from the config is created if not provided)
            filesystem: Optional filesystem (local disk if not provided)
            error_sink: Optional error sink (failures are logged if not provided)
        """
        self.config = config
        self.handler = handler
        self.filesystem = filesystem

        # Statistics tracking
        self._stats: dict[str, Any] = {
            "changes_forwarded": 0,
            "operations": {"added": 0, "modified": 0, "deleted": 0, "archive_entries": 0, "failed": 0},
            "errors": [],
        }
        self._stats_lock = threading.Lock()
        self._error_sink = _CountingErrorSink(error_sink or LoggingErrorSink(), self._record_error)

        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or self._new_scheduler()

        self.class_monitor: FileMonitor | None = None
        self.jar_monitor: JarMonitor | None = None
        self._monitoring_active = False

    def start(self) -> None:
        """
        Create the monitors and start polling.

        Raises:
            ConfigurationError: If no class folder is configured or a folder is invalid
        """
        if self._monitoring_active:
            logger.debug("Monitoring already active")
            return

        if not self.config.is_valid():
            raise ConfigurationError(
                "A class folder is required to start monitoring",
                config_key="class_folder",
                expected_type="absolute directory path",
            )

        if self._owns_scheduler and self.scheduler.is_shut_down:
            # The owned scheduler was released by stop()
            self.scheduler = self._new_scheduler()

        self.class_monitor = FileMonitor(
            str(self.config.class_folder),
            self.config.class_extension,
            filesystem=self.filesystem,
            error_sink=self._error_sink,
        )
        self.class_monitor.add_added_listener(self._count("added"))
        self.class_monitor.add_deleted_listener(self._count("deleted"))
        self.class_monitor.add_modified_listener(self._handle_file_modified)

        if self.config.jar_folder is not None:
            self.jar_monitor = JarMonitor(
                str(self.config.jar_folder),
                filesystem=self.filesystem,
                error_sink=self._error_sink,
                extension=self.config.archive_extension,
            )
            self.jar_monitor.add_entry_modified_listener(self._handle_archive_entry_modified)

        self.scheduler.start(self.class_monitor, self.config.period_ms)
        if self.jar_monitor is not None:
            self.scheduler.start(self.jar_monitor, self.config.period_ms)

        self._monitoring_active = True
        logger.info("Watching class folder: %s", self.config.class_folder)
        logger.info("Watching jar folder: %s", self.config.jar_folder)
        logger.info("Period between checks (ms): %d", self.config.period_ms)

    def stop(self) -> None:
        """Stop polling. Scans already running are allowed to finish."""
        if not self._monitoring_active:
            logger.debug("Monitoring not active, nothing to stop")
            return

        logger.info("Stopping file monitoring...")
        for monitor in (self.class_monitor, self.jar_monitor):
            if monitor is not None:
                self.scheduler.stop(monitor)
        if self._owns_scheduler:
            self.scheduler.shutdown()

        self._monitoring_active = False
        logger.info("File monitoring stopped")

    def _new_scheduler(self) -> MonitorScheduler:
        return MonitorScheduler(worker_count=self.config.worker_count, error_sink=self._error_sink)

    def _increment(self, key: str) -> None:
        with self._stats_lock:
            if key == "changes_forwarded":
                self._stats[key] += 1
            else:
                self._stats["operations"][key] += 1

    def _record_error(self, error: BaseError) -> None:
        with self._stats_lock:
            self._stats["errors"].append(str(error))
            # Keep only the last errors
            if len(self._stats["errors"]) > MAX_RECORDED_ERRORS:
                self._stats["errors"] = self._stats["errors"][-MAX_RECORDED_ERRORS:]

    def _count(self, operation: str):
        def listener(event: FileChangeEvent) -> None:
            self._increment(operation)

        return listener

    def _handle_file_modified(self, event: FileChangeEvent) -> None:
        self._increment("modified")
        logger.info("Class file modified: %s", event.relative_path)
        try:
            self.handler.on_file_changed(event)
        except Exception:
            self._increment("failed")
            raise
        self._increment("changes_forwarded")

    def _handle_archive_entry_modified(self, event: ArchiveEntryChangeEvent) -> None:
        self._increment("archive_entries")
        logger.info("Archive entry modified: %s in %s", event.entry_name, event.archive.relative_path)
        try:
            self.handler.on_archive_entry_changed(event)
        except Exception:
            self._increment("failed")
            raise
        self._increment("changes_forwarded")

    @property
    def is_monitoring(self) -> bool:
        """Check if currently monitoring for changes."""
        return self._monitoring_active

    def get_monitoring_stats(self) -> dict[str, Any]:
        """
        Get monitoring statistics.

        Returns:
            Dictionary with monitoring statistics
        """
        with self._stats_lock:
            processing_stats = {
                "changes_forwarded": self._stats["changes_forwarded"],
                "operations": dict(self._stats["operations"]),
                "errors": list(self._stats["errors"]),
            }

        return {
            "monitoring_active": self._monitoring_active,
            "class_folder": str(self.config.class_folder) if self.config.class_folder else None,
            "jar_folder": str(self.config.jar_folder) if self.config.jar_folder else None,
            "tracked_files": len(self.class_monitor.tracked_paths()) if self.class_monitor else 0,
            "tracked_archives": len(self.jar_monitor.tracked_archives()) if self.jar_monitor else 0,
            "processing_stats": processing_stats,
            "configuration": {
                "period_ms": self.config.period_ms,
                "class_extension": self.config.class_extension,
                "archive_extension": self.config.archive_extension,
                "worker_count": self.config.worker_count,
            },
        }


def stop_all(coordinators: Iterable[MonitoringCoordinator]) -> None:
    """Stop every coordinator in the collection, continuing past failures."""
    for coordinator in coordinators:
        try:
            coordinator.stop()
        except Exception as e:
            logger.error("Error stopping monitoring for %s: %s", coordinator.config.class_folder, e)
