"""
Abstract interfaces for the hotswap monitor.

These interfaces define the contracts between the detectors and their
collaborators (filesystem, error sink, change handler), enabling dependency
injection for testing and alternative implementations.
"""

from abc import ABC, abstractmethod
from types import TracebackType

from hotswap_monitor.models import (
    ArchiveEntry,
    ArchiveEntryChangeEvent,
    BaseError,
    DirEntry,
    FileChangeEvent,
)


class IArchiveReader(ABC):
    """Interface for an opened zip-like archive."""

    @abstractmethod
    def entries(self) -> list[ArchiveEntry]:
        """
        Enumerate every entry in the archive.

        Returns:
            Entries with their names and stored timestamps

        Raises:
            OSError: If the archive directory cannot be read
        """
        pass

    @abstractmethod
    def read_entry(self, name: str) -> bytes:
        """
        Read the bytes of one entry.

        Raises:
            OSError: If the entry is missing or cannot be read
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the archive."""
        pass

    def __enter__(self) -> "IArchiveReader":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class IFileSystem(ABC):
    """
    Interface for the filesystem operations a scan needs.

    Every method may raise ``OSError``; callers treat that as a transient
    failure of the single path involved.
    """

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Check whether the path is an existing directory."""
        pass

    @abstractmethod
    def is_file(self, path: str) -> bool:
        """Check whether the path is an existing regular file."""
        pass

    def exists(self, path: str) -> bool:
        """Check whether anything exists at the path."""
        return self.is_dir(path) or self.is_file(path)

    @abstractmethod
    def list_dir(self, path: str) -> list[DirEntry]:
        """
        List the children of a directory.

        Args:
            path: Absolute directory path

        Returns:
            Children in filesystem listing order (not necessarily sorted)
        """
        pass

    @abstractmethod
    def modified_time(self, path: str) -> int:
        """Get the modification time of a file in milliseconds since the epoch."""
        pass

    @abstractmethod
    def open_archive(self, path: str) -> IArchiveReader:
        """
        Open a zip-like archive for reading.

        Raises:
            OSError: If the file is missing, unreadable or not a valid archive
        """
        pass

    def is_absolute(self, path: str) -> bool:
        """Check whether a path string is absolute for this filesystem."""
        return path.startswith(self.separator)

    @property
    def separator(self) -> str:
        """Path separator used by this filesystem."""
        return "/"


class IErrorSink(ABC):
    """Interface for receiving local failures that do not stop a scan."""

    @abstractmethod
    def report(self, error: BaseError) -> None:
        """
        Receive one local failure.

        Args:
            error: The failure, carrying path/entry context and its cause
        """
        pass


class IChangeDetector(ABC):
    """Interface for anything the scheduler can run periodically."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable identifier used in logs."""
        pass

    @abstractmethod
    def scan(self) -> list:
        """
        Perform one complete pass and dispatch the changes found.

        Returns:
            The events produced by this pass
        """
        pass


class IChangeHandler(ABC):
    """
    Interface for the action taken when code changes.

    Implementations typically reload or redefine the changed code in a
    running process.
    """

    @abstractmethod
    def on_file_changed(self, event: FileChangeEvent) -> None:
        """
        Handle a modified plain file.

        Args:
            event: The change, with a path relative to the class folder
        """
        pass

    @abstractmethod
    def on_archive_entry_changed(self, event: ArchiveEntryChangeEvent) -> None:
        """
        Handle a modified entry inside a tracked archive.

        Args:
            event: The change, with a handle to re-read the entry
        """
        pass
