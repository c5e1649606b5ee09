"""
Archive monitor: detects changed entries inside jar (zip) files.

A ``FileMonitor`` restricted to archives acts as a cheap gate: only when an
archive's own timestamp changes is it opened and its entries compared with the
timestamps recorded for it.
"""

import logging
import threading
from collections.abc import Callable

from hotswap_monitor.core.interfaces import IChangeDetector, IErrorSink, IFileSystem
from hotswap_monitor.filesystem import LocalFileSystem
from hotswap_monitor.models import (
    ArchiveEntry,
    ArchiveEntryChangeEvent,
    ArchiveHandle,
    ArchiveReadError,
    FileChangeEvent,
)
from hotswap_monitor.monitoring.dispatch import ListenerList, LoggingErrorSink, report_safely
from hotswap_monitor.monitoring.file_monitor import FileMonitor

logger = logging.getLogger(__name__)

EntryListener = Callable[[ArchiveEntryChangeEvent], object]


class JarMonitor(IChangeDetector):
    """
    Watches a folder of archives and reports entries whose timestamp changed.

    The first sight of an archive records its entries as a baseline and
    reports nothing. Entries that appear later inside a known archive are
    added to the baseline silently; only a known entry with a different
    timestamp produces an ``ArchiveEntryChangeEvent``.

    File-level events for the archives themselves are available through
    ``file_monitor``.
    """

    def __init__(
        self,
        root: str,
        filesystem: IFileSystem | None = None,
        error_sink: IErrorSink | None = None,
        extension: str = "jar",
    ):
        """
        Initialize the archive monitor.

        Args:
            root: Absolute path of an existing directory holding archives
            filesystem: Filesystem to scan (local disk if not provided)
            error_sink: Receives local failures (logged if not provided)
            extension: Archive file extension

        Raises:
            ConfigurationError: If the root is not an absolute existing directory
        """
        self._fs = filesystem or LocalFileSystem()
        self._error_sink = error_sink or LoggingErrorSink()
        self._file_monitor = FileMonitor(root, extension, filesystem=self._fs, error_sink=self._error_sink)

        # archive relative path -> entry name -> stored entry time
        self._indices: dict[str, dict[str, int]] = {}
        # archives whose last read failed, retried on every pass
        self._unreadable: set[str] = set()
        self._handled: set[str] = set()
        self._pending: list[ArchiveEntryChangeEvent] = []
        self._scan_lock = threading.RLock()

        self._entry_listeners: ListenerList[ArchiveEntryChangeEvent] = ListenerList(
            "archive entry modified", self._error_sink
        )

        self._file_monitor.add_added_listener(self._on_archive_added)
        self._file_monitor.add_modified_listener(self._on_archive_modified)
        self._file_monitor.add_deleted_listener(self._on_archive_deleted)

    @property
    def file_monitor(self) -> FileMonitor:
        return self._file_monitor

    @property
    def root(self) -> str:
        return self._file_monitor.root

    @property
    def name(self) -> str:
        return f"archives {self._file_monitor.name}"

    def add_entry_modified_listener(self, listener: EntryListener) -> None:
        self._entry_listeners.add(listener)

    def get_index(self, relative_path: str) -> dict[str, int] | None:
        """Copy of the recorded entry timestamps for one archive, or None if it is not indexed."""
        with self._scan_lock:
            index = self._indices.get(relative_path)
            return dict(index) if index is not None else None

    def tracked_archives(self) -> list[str]:
        with self._scan_lock:
            return list(self._indices)

    def scan(self) -> list[ArchiveEntryChangeEvent]:
        """
        Scan the archive folder once.

        Returns:
            Entry change events produced by this pass, already dispatched
        """
        with self._scan_lock:
            self._pending = []
            self._handled = set()
            self._file_monitor.scan()
            self._retry_unreadable()
            events, self._pending = self._pending, []

        if events:
            logger.info("Scan of %s found %d changed archive entries", self.name, len(events))
        return events

    def _on_archive_added(self, event: FileChangeEvent) -> None:
        self._handled.add(event.relative_path)
        self._build_index(event.relative_path)

    def _on_archive_modified(self, event: FileChangeEvent) -> None:
        self._handled.add(event.relative_path)
        if event.relative_path not in self._indices:
            # The read on first sight failed; treat this read as the baseline
            self._build_index(event.relative_path)
        else:
            self._update_index(event.relative_path)

    def _on_archive_deleted(self, event: FileChangeEvent) -> None:
        self._handled.add(event.relative_path)
        self._unreadable.discard(event.relative_path)
        if self._indices.pop(event.relative_path, None) is not None:
            logger.debug("Discarded index for deleted archive %s", event.relative_path)

    def _retry_unreadable(self) -> None:
        for relative_path in list(self._unreadable):
            if relative_path in self._handled:
                continue
            logger.debug("Retrying unreadable archive %s", relative_path)
            if relative_path in self._indices:
                self._update_index(relative_path)
            else:
                self._build_index(relative_path)

    def _build_index(self, relative_path: str) -> None:
        entries = self._read_entries(relative_path)
        if entries is None:
            return
        self._indices[relative_path] = {entry.name: entry.timestamp for entry in entries}
        logger.debug("Indexed %d entries of %s", len(entries), relative_path)

    def _update_index(self, relative_path: str) -> None:
        entries = self._read_entries(relative_path)
        if entries is None:
            return

        index = self._indices[relative_path]
        handle = self._handle(relative_path)
        for entry in entries:
            stored = index.get(entry.name)
            if stored is None:
                index[entry.name] = entry.timestamp
            elif stored != entry.timestamp:
                index[entry.name] = entry.timestamp
                event = ArchiveEntryChangeEvent(archive=handle, entry_name=entry.name, timestamp=entry.timestamp)
                logger.debug("Archive entry modified: %s", event)
                self._pending.append(event)
                self._entry_listeners.notify(event)

    def _read_entries(self, relative_path: str) -> list[ArchiveEntry] | None:
        path = self._absolute(relative_path)
        try:
            with self._fs.open_archive(path) as archive:
                entries = archive.entries()
        except (OSError, ValueError, EOFError, OverflowError) as e:
            self._unreadable.add(relative_path)
            report_safely(
                self._error_sink,
                ArchiveReadError(
                    f"Could not read archive {relative_path}; will retry on the next scan",
                    path=path,
                    operation="open_archive",
                    underlying_error=e,
                ),
            )
            return None

        self._unreadable.discard(relative_path)
        return entries

    def _handle(self, relative_path: str) -> ArchiveHandle:
        return ArchiveHandle(path=self._absolute(relative_path), relative_path=relative_path, filesystem=self._fs)

    def _absolute(self, relative_path: str) -> str:
        root = self._file_monitor.root
        separator = self._fs.separator
        return root + relative_path if root.endswith(separator) else root + separator + relative_path

    def __repr__(self) -> str:
        return f"JarMonitor(root={self.root!r}, archives={len(self._indices)})"
