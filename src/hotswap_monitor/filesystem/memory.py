"""
In-memory filesystem for tests and embedding.

Paths are POSIX style and must be absolute. The tree is guarded by a lock so a
test can mutate it while a scheduled scan is reading it.
"""

import posixpath
import threading
import time

from hotswap_monitor.core.interfaces import IArchiveReader, IFileSystem
from hotswap_monitor.models import ArchiveEntry, DirEntry


def _now_millis() -> int:
    return int(time.time() * 1000)


class _MemoryFile:
    def __init__(self, data: bytes, mtime: int, entries: dict[str, tuple[int, bytes]] | None = None):
        self.data = data
        self.mtime = mtime
        # name -> (timestamp, bytes), only set for archives
        self.entries = entries


class InMemoryArchiveReader(IArchiveReader):
    """Snapshot of an in-memory archive taken when it was opened."""

    def __init__(self, path: str, entries: dict[str, tuple[int, bytes]]):
        self.path = path
        self._entries = dict(entries)
        self.closed = False

    def entries(self) -> list[ArchiveEntry]:
        return [ArchiveEntry(name=name, timestamp=ts) for name, (ts, _) in self._entries.items()]

    def read_entry(self, name: str) -> bytes:
        if name not in self._entries:
            raise OSError(f"No entry {name} in {self.path}")
        return self._entries[name][1]

    def close(self) -> None:
        self.closed = True


class InMemoryFileSystem(IFileSystem):
    """
    A directory tree held in memory.

    Directories are created implicitly by writing files below them, or
    explicitly with ``make_dirs``. Listing order is insertion order.

    Example:
        fs = InMemoryFileSystem()
        fs.write_file("/w/A.class", b"...", mtime=1)
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=1)
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._dirs: dict[str, list[str]] = {"/": []}
        self._files: dict[str, _MemoryFile] = {}
        self._failing: set[str] = set()

    # === Mutation helpers ===

    def make_dirs(self, path: str) -> None:
        """Create a directory and any missing parents."""
        path = self._normalize(path)
        with self._lock:
            self._ensure_dir(path)

    def write_file(self, path: str, data: bytes = b"", mtime: int | None = None) -> None:
        """Create or overwrite a plain file."""
        self._put(path, _MemoryFile(data, _now_millis() if mtime is None else mtime))

    def write_archive(
        self,
        path: str,
        entries: dict[str, tuple[int, bytes]],
        mtime: int | None = None,
    ) -> None:
        """
        Create or overwrite an archive.

        Args:
            path: Absolute archive path
            entries: Entry name mapped to (timestamp, bytes)
            mtime: Modification time of the archive file itself
        """
        self._put(path, _MemoryFile(b"", _now_millis() if mtime is None else mtime, dict(entries)))

    def touch(self, path: str, mtime: int | None = None) -> None:
        """Change a file's modification time."""
        path = self._normalize(path)
        with self._lock:
            if path not in self._files:
                raise FileNotFoundError(path)
            self._files[path].mtime = _now_millis() if mtime is None else mtime

    def remove(self, path: str) -> None:
        """Remove a file, or a directory and everything below it."""
        path = self._normalize(path)
        with self._lock:
            if path in self._files:
                del self._files[path]
            elif path in self._dirs:
                for child in list(self._dirs[path]):
                    self.remove(posixpath.join(path, child))
                del self._dirs[path]
            else:
                raise FileNotFoundError(path)
            parent, name = posixpath.split(path)
            self._dirs[parent].remove(name)

    def rename(self, source: str, target: str) -> None:
        """Move a file to a new path, keeping its content and timestamp."""
        source = self._normalize(source)
        with self._lock:
            if source not in self._files:
                raise FileNotFoundError(source)
            node = self._files[source]
            self.remove(source)
            self._put(target, node)

    def fail_on(self, path: str) -> None:
        """Make every read of ``path`` raise ``PermissionError`` until ``clear_failures``."""
        with self._lock:
            self._failing.add(self._normalize(path))

    def clear_failures(self) -> None:
        with self._lock:
            self._failing.clear()

    # === IFileSystem ===

    def is_dir(self, path: str) -> bool:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            return path in self._dirs

    def is_file(self, path: str) -> bool:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            return path in self._files

    def exists(self, path: str) -> bool:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            return path in self._files or path in self._dirs

    def list_dir(self, path: str) -> list[DirEntry]:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            if path not in self._dirs:
                raise NotADirectoryError(path)
            return [
                DirEntry(name=name, path=posixpath.join(path, name), is_dir=posixpath.join(path, name) in self._dirs)
                for name in self._dirs[path]
            ]

    def modified_time(self, path: str) -> int:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            if path not in self._files:
                raise FileNotFoundError(path)
            return self._files[path].mtime

    def open_archive(self, path: str) -> IArchiveReader:
        path = self._normalize(path)
        with self._lock:
            self._check(path)
            node = self._files.get(path)
            if node is None:
                raise FileNotFoundError(path)
            if node.entries is None:
                raise OSError(f"Not a valid archive: {path}")
            return InMemoryArchiveReader(path, node.entries)

    # === Internals ===

    def _normalize(self, path: str) -> str:
        if not path.startswith("/"):
            raise ValueError(f"In-memory paths must be absolute: {path}")
        return posixpath.normpath(path)

    def _check(self, path: str) -> None:
        if path in self._failing:
            raise PermissionError(f"Simulated failure reading {path}")

    def _ensure_dir(self, path: str) -> None:
        if path in self._dirs:
            return
        if path in self._files:
            raise NotADirectoryError(path)
        parent, name = posixpath.split(path)
        self._ensure_dir(parent)
        self._dirs[path] = []
        self._dirs[parent].append(name)

    def _put(self, path: str, node: _MemoryFile) -> None:
        path = self._normalize(path)
        with self._lock:
            if path in self._dirs:
                raise IsADirectoryError(path)
            parent, name = posixpath.split(path)
            self._ensure_dir(parent)
            if path not in self._files:
                self._dirs[parent].append(name)
            self._files[path] = node
