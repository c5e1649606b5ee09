"""
Polling change detector for one directory tree and one file extension.

Each scan compares the tree against the timestamps recorded by the previous
scan and reports files that were added, modified or deleted since then. A
rename shows up as a deletion of the old path followed by an addition of the
new one, within the same scan.
"""

import logging
import threading
from collections.abc import Callable, Iterator

from hotswap_monitor.core.interfaces import IChangeDetector, IErrorSink, IFileSystem
from hotswap_monitor.filesystem import LocalFileSystem
from hotswap_monitor.models import ChangeKind, DirEntry, FileAccessError, FileChangeEvent
from hotswap_monitor.models.exceptions import raise_config_error
from hotswap_monitor.monitoring.dispatch import ListenerList, LoggingErrorSink, report_safely

logger = logging.getLogger(__name__)

FileListener = Callable[[FileChangeEvent], object]


def normalize_extension(extension: str) -> str:
    """Strip surrounding whitespace and any leading dots: ``".class"`` -> ``"class"``."""
    return extension.strip().lstrip(".")


class FileMonitor(IChangeDetector):
    """
    Watches a folder and its subfolders for added, modified and deleted files.

    Only files whose name ends with ``"." + extension`` are tracked;
    directories are always descended into and never reported themselves.
    Construction does not scan: the first ``scan()`` reports every matching
    file already present as added.

    Example:
        monitor = FileMonitor("/project/classes", "class")
        monitor.add_modified_listener(lambda event: print(event.relative_path))
        monitor.scan()
    """

    def __init__(
        self,
        root: str,
        extension: str,
        filesystem: IFileSystem | None = None,
        error_sink: IErrorSink | None = None,
    ):
        """
        Initialize the monitor.

        Args:
            root: Absolute path of an existing directory to watch
            extension: File extension to track, with or without the leading dot
            filesystem: Filesystem to scan (local disk if not provided)
            error_sink: Receives local failures (logged if not provided)

        Raises:
            ConfigurationError: If the root is not an absolute existing directory
                or the extension is empty
        """
        self._fs = filesystem or LocalFileSystem()
        self._error_sink = error_sink or LoggingErrorSink()

        root = str(root)
        if not self._fs.is_absolute(root) or not self._fs.is_dir(root):
            raise_config_error(
                f"Watch root {root} must be an absolute path to an existing directory",
                config_key="root",
                expected_type="absolute directory path",
                actual_value=root,
            )
        ext = normalize_extension(extension)
        if not ext:
            raise_config_error(
                "File extension must not be empty",
                config_key="extension",
                expected_type="non-empty string",
                actual_value=extension,
            )

        self._root = root.rstrip(self._fs.separator) or root
        self._prefix = self._root if self._root.endswith(self._fs.separator) else self._root + self._fs.separator
        self._extension = ext
        self._suffix = "." + ext

        # absolute path -> last observed modification time
        self._path_state: dict[str, int] = {}
        self._scan_lock = threading.RLock()

        self._added_listeners: ListenerList[FileChangeEvent] = ListenerList("added", self._error_sink)
        self._modified_listeners: ListenerList[FileChangeEvent] = ListenerList("modified", self._error_sink)
        self._deleted_listeners: ListenerList[FileChangeEvent] = ListenerList("deleted", self._error_sink)

        logger.debug("Created file monitor for *.%s under %s", self._extension, self._root)

    @property
    def root(self) -> str:
        return self._root

    @property
    def extension(self) -> str:
        return self._extension

    @property
    def name(self) -> str:
        return f"{self._root}:*.{self._extension}"

    def add_added_listener(self, listener: FileListener) -> None:
        self._added_listeners.add(listener)

    def add_modified_listener(self, listener: FileListener) -> None:
        self._modified_listeners.add(listener)

    def add_deleted_listener(self, listener: FileListener) -> None:
        self._deleted_listeners.add(listener)

    def tracked_paths(self) -> dict[str, int]:
        """Snapshot of the tracked absolute paths and their recorded timestamps."""
        with self._scan_lock:
            return dict(self._path_state)

    def scan(self) -> list[FileChangeEvent]:
        """
        Run one deletion pass followed by one add/modify pass.

        Every event is dispatched to the listeners as soon as it is found.
        Concurrent callers are serialized: a pass never starts while another
        pass of the same monitor is running.

        Returns:
            Deleted events first, then added/modified events in traversal order
        """
        with self._scan_lock:
            events = self._check_deletions()
            events.extend(self._check_additions_and_modifications())

        if events:
            logger.info("Scan of %s found %d change(s)", self.name, len(events))
        else:
            logger.debug("Scan of %s found no changes", self.name)
        return events

    def _check_deletions(self) -> list[FileChangeEvent]:
        events = []
        removed = []
        for path in self._path_state:
            try:
                still_there = self._fs.is_file(path)
            except OSError as e:
                self._report_access_error(path, "is_file", e)
                continue
            if not still_there:
                removed.append(path)
                event = self._new_event(path, ChangeKind.DELETED)
                events.append(event)
                self._deleted_listeners.notify(event)

        for path in removed:
            del self._path_state[path]
        return events

    def _check_additions_and_modifications(self) -> list[FileChangeEvent]:
        events = []
        for entry in self._walk(self._root):
            try:
                mtime = self._fs.modified_time(entry.path)
            except OSError as e:
                self._report_access_error(entry.path, "modified_time", e)
                continue

            previous = self._path_state.get(entry.path)
            if previous is None:
                self._path_state[entry.path] = mtime
                event = self._new_event(entry.path, ChangeKind.ADDED)
                events.append(event)
                self._added_listeners.notify(event)
            elif previous != mtime:
                self._path_state[entry.path] = mtime
                event = self._new_event(entry.path, ChangeKind.MODIFIED)
                events.append(event)
                self._modified_listeners.notify(event)
        return events

    def _walk(self, directory: str) -> Iterator[DirEntry]:
        """Yield matching files depth first, descending into each directory where it is listed."""
        try:
            children = self._fs.list_dir(directory)
        except OSError as e:
            self._report_access_error(directory, "list_dir", e)
            return

        for child in children:
            if child.is_dir:
                yield from self._walk(child.path)
            elif child.name.endswith(self._suffix):
                yield child

    def _new_event(self, path: str, kind: ChangeKind) -> FileChangeEvent:
        if path.startswith(self._prefix):
            path = path[len(self._prefix):]
        logger.debug("File %s: %s", kind.value, path)
        return FileChangeEvent(relative_path=path, kind=kind)

    def _report_access_error(self, path: str, operation: str, error: OSError) -> None:
        report_safely(
            self._error_sink,
            FileAccessError(
                f"Could not read {path} during scan of {self.name}; will retry on the next scan",
                path=path,
                operation=operation,
                underlying_error=error,
            ),
        )

    def __repr__(self) -> str:
        return f"FileMonitor(root={self._root!r}, extension={self._extension!r}, tracked={len(self._path_state)})"
