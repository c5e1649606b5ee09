"""
Hotswap monitor: poll-based detection of changed class files and jar entries.

Scans directory trees at a fixed delay, reports files that were added,
modified or deleted since the previous scan, and looks inside modified jar
archives to report exactly which entries changed.
"""

from hotswap_monitor.models import (
    ArchiveEntryChangeEvent,
    ArchiveHandle,
    ChangeKind,
    ConfigurationError,
    FileChangeEvent,
)
from hotswap_monitor.monitoring import FileMonitor, JarMonitor, MonitoringCoordinator, MonitorScheduler, stop_all

__version__ = "0.1.0"

__all__ = [
    "ArchiveEntryChangeEvent",
    "ArchiveHandle",
    "ChangeKind",
    "ConfigurationError",
    "FileChangeEvent",
    "FileMonitor",
    "JarMonitor",
    "MonitoringCoordinator",
    "MonitorScheduler",
    "stop_all",
]
