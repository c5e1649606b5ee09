"""
Change events emitted by the monitors.

A file-level change is a single tagged value (``FileChangeEvent`` with a
``ChangeKind``) rather than one class per kind. Archive entry changes carry a
handle that lets the consumer re-open the archive and read the entry bytes.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeKind(str, Enum):
    """Kind of a file-level change."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class FileChangeEvent(BaseModel):
    """
    A file added, modified or deleted under a watch root.

    ``relative_path`` never includes the watch root itself.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    relative_path: str = Field(..., min_length=1, description="Path relative to the watch root")
    kind: ChangeKind = Field(..., description="Kind of change")
    detected_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the change was observed",
    )

    def __str__(self) -> str:
        return f"FileChangeEvent({self.kind.value}: {self.relative_path})"


class ArchiveHandle(BaseModel):
    """
    Reference to an archive that a consumer can re-open.

    The handle does not keep the archive open; ``read_entry`` opens it through
    the same filesystem the monitor used to detect the change.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: str = Field(..., min_length=1, description="Absolute path of the archive")
    relative_path: str = Field(..., min_length=1, description="Archive path relative to the watch root")
    filesystem: Any = Field(..., exclude=True, repr=False, description="Filesystem used to open the archive")

    def read_entry(self, entry_name: str) -> bytes:
        """
        Read one entry's bytes.

        Raises:
            OSError: If the archive or the entry cannot be read
        """
        with self.filesystem.open_archive(self.path) as archive:
            return archive.read_entry(entry_name)

    def __str__(self) -> str:
        return self.relative_path


class ArchiveEntryChangeEvent(BaseModel):
    """An entry inside an already tracked archive whose timestamp changed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    archive: ArchiveHandle = Field(..., description="Archive containing the entry")
    entry_name: str = Field(..., min_length=1, description="Name of the changed entry")
    timestamp: int = Field(..., description="New stored entry time in milliseconds since the epoch")

    def read(self) -> bytes:
        """Read the changed entry's bytes from the archive."""
        return self.archive.read_entry(self.entry_name)

    def __str__(self) -> str:
        return f"ArchiveEntryChangeEvent({self.archive.relative_path}!{self.entry_name})"
