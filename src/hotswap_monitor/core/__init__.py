"""Core contracts shared by the monitors and their collaborators."""

from hotswap_monitor.core.interfaces import (
    IArchiveReader,
    IChangeDetector,
    IChangeHandler,
    IErrorSink,
    IFileSystem,
)

__all__ = [
    "IArchiveReader",
    "IChangeDetector",
    "IChangeHandler",
    "IErrorSink",
    "IFileSystem",
]
