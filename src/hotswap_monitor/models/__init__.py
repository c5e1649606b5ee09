"""Data models and exceptions for the hotswap monitor."""

from hotswap_monitor.models.entries import ArchiveEntry, DirEntry
from hotswap_monitor.models.events import ArchiveEntryChangeEvent, ArchiveHandle, ChangeKind, FileChangeEvent
from hotswap_monitor.models.exceptions import (
    ArchiveReadError,
    BaseError,
    ConfigurationError,
    FileAccessError,
    ListenerError,
    MonitoringError,
)

__all__ = [
    "ArchiveEntry",
    "DirEntry",
    "ChangeKind",
    "FileChangeEvent",
    "ArchiveHandle",
    "ArchiveEntryChangeEvent",
    "BaseError",
    "ConfigurationError",
    "FileAccessError",
    "ArchiveReadError",
    "ListenerError",
    "MonitoringError",
]
