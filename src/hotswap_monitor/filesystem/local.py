"""
Filesystem access backed by the operating system.

Archives are read with ``zipfile``; jar files are plain zip files.
"""

import os
import time
import zipfile

from hotswap_monitor.core.interfaces import IArchiveReader, IFileSystem
from hotswap_monitor.models import ArchiveEntry, DirEntry


def zip_time_to_millis(date_time: tuple[int, int, int, int, int, int]) -> int:
    """
    Convert a zip entry ``date_time`` tuple to epoch milliseconds.

    Zip timestamps carry no timezone and are interpreted as local time.
    """
    return int(time.mktime(date_time + (0, 0, -1))) * 1000


# Exceptions zipfile and the entry conversion raise for damaged archives
ZIP_READ_ERRORS = (zipfile.BadZipFile, ValueError, EOFError, OverflowError)


class ZipArchiveReader(IArchiveReader):
    """An archive opened with ``zipfile``."""

    def __init__(self, path: str):
        try:
            self._zip = zipfile.ZipFile(path)
        except ZIP_READ_ERRORS as e:
            raise OSError(f"Not a valid archive: {path}") from e
        self.path = path

    def entries(self) -> list[ArchiveEntry]:
        try:
            return [
                ArchiveEntry(name=info.filename, timestamp=zip_time_to_millis(info.date_time))
                for info in self._zip.infolist()
            ]
        except ZIP_READ_ERRORS as e:
            raise OSError(f"Damaged archive directory in {self.path}: {e}") from e

    def read_entry(self, name: str) -> bytes:
        try:
            return self._zip.read(name)
        except KeyError as e:
            raise OSError(f"No entry {name} in {self.path}") from e
        except ZIP_READ_ERRORS as e:
            raise OSError(f"Corrupt entry {name} in {self.path}") from e

    def close(self) -> None:
        self._zip.close()


class LocalFileSystem(IFileSystem):
    """IFileSystem over the local disk."""

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def list_dir(self, path: str) -> list[DirEntry]:
        children = []
        with os.scandir(path) as it:
            for entry in it:
                # Symlinked directories are not followed to avoid cycles
                is_dir = entry.is_dir(follow_symlinks=False)
                if not is_dir and not entry.is_file():
                    continue
                children.append(DirEntry(name=entry.name, path=entry.path, is_dir=is_dir))
        return children

    def modified_time(self, path: str) -> int:
        return os.stat(path).st_mtime_ns // 1_000_000

    def open_archive(self, path: str) -> IArchiveReader:
        return ZipArchiveReader(path)

    def is_absolute(self, path: str) -> bool:
        return os.path.isabs(path)

    @property
    def separator(self) -> str:
        return os.sep
