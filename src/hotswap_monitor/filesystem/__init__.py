"""Pluggable filesystem implementations."""

from hotswap_monitor.filesystem.local import LocalFileSystem, ZipArchiveReader
from hotswap_monitor.filesystem.memory import InMemoryFileSystem

__all__ = ["LocalFileSystem", "ZipArchiveReader", "InMemoryFileSystem"]
