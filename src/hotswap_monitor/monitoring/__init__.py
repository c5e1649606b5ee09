"""
Monitoring package for poll-based change detection.

This package provides the file and archive monitors, listener dispatch, the
fixed-delay scheduler and the coordinator that ties them to a change handler.
"""

from .dispatch import ListenerList, LoggingErrorSink
from .file_monitor import FileMonitor
from .jar_monitor import JarMonitor
from .monitoring_coordinator import MonitoringCoordinator, stop_all
from .scheduler import MonitorScheduler, ScheduledMonitor

__all__ = [
    "FileMonitor",
    "JarMonitor",
    "ListenerList",
    "LoggingErrorSink",
    "MonitorScheduler",
    "ScheduledMonitor",
    "MonitoringCoordinator",
    "stop_all",
]
