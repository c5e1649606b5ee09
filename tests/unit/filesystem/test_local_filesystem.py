"""Unit tests for the local disk filesystem and zip reader."""

import os
import time
import zipfile

import pytest
from hotswap_monitor.filesystem import LocalFileSystem, ZipArchiveReader
from hotswap_monitor.filesystem.local import zip_time_to_millis


def write_zip(path, entries):
    with zipfile.ZipFile(path, "w") as archive:
        for name, (date_time, data) in entries.items():
            archive.writestr(zipfile.ZipInfo(name, date_time=date_time), data)


class TestLocalFileSystem:
    """Test cases for LocalFileSystem."""

    @pytest.fixture
    def fs(self):
        return LocalFileSystem()

    def test_queries(self, fs, tmp_path):
        """Test the existence checks on files and directories."""
        (tmp_path / "A.class").write_bytes(b"")
        (tmp_path / "pkg").mkdir()

        assert fs.is_dir(str(tmp_path))
        assert fs.is_file(str(tmp_path / "A.class"))
        assert not fs.is_file(str(tmp_path / "pkg"))
        assert fs.exists(str(tmp_path / "pkg"))
        assert not fs.exists(str(tmp_path / "missing"))

    def test_list_dir(self, fs, tmp_path):
        """Test that listing returns files and directories with their kind."""
        (tmp_path / "A.class").write_bytes(b"")
        (tmp_path / "pkg").mkdir()

        entries = {entry.name: entry for entry in fs.list_dir(str(tmp_path))}

        assert set(entries) == {"A.class", "pkg"}
        assert entries["pkg"].is_dir
        assert not entries["A.class"].is_dir
        assert entries["A.class"].path == os.path.join(str(tmp_path), "A.class")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlinked_directory_not_descended(self, fs, tmp_path):
        """Test that a symlink to a directory is not reported as a directory."""
        (tmp_path / "real").mkdir()
        try:
            os.symlink(tmp_path / "real", tmp_path / "link", target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks here")

        entries = {entry.name: entry for entry in fs.list_dir(str(tmp_path))}

        assert entries["real"].is_dir
        assert "link" not in entries

    def test_list_missing_dir_raises(self, fs, tmp_path):
        """Test that listing a missing directory raises OSError."""
        with pytest.raises(OSError):
            fs.list_dir(str(tmp_path / "missing"))

    def test_modified_time_in_millis(self, fs, tmp_path):
        """Test that modification times are whole milliseconds since the epoch."""
        path = tmp_path / "A.class"
        path.write_bytes(b"")
        os.utime(path, ns=(1_234_567_891_000_000_000, 1_234_567_891_000_000_000))

        assert fs.modified_time(str(path)) == 1_234_567_891_000

    def test_is_absolute(self, fs, tmp_path):
        """Test absolute path detection."""
        assert fs.is_absolute(str(tmp_path))
        assert not fs.is_absolute("relative/dir")
        assert fs.separator == os.sep

    def test_open_archive(self, fs, tmp_path):
        """Test that a zip file can be enumerated and read."""
        date_time = (2022, 3, 4, 5, 6, 8)
        write_zip(tmp_path / "lib.jar", {"X.class": (date_time, b"x"), "p/Y.class": (date_time, b"y")})

        with fs.open_archive(str(tmp_path / "lib.jar")) as archive:
            entries = {entry.name: entry.timestamp for entry in archive.entries()}
            data = archive.read_entry("p/Y.class")

        assert entries == {"X.class": zip_time_to_millis(date_time), "p/Y.class": zip_time_to_millis(date_time)}
        assert data == b"y"

    def test_open_invalid_archive_raises_oserror(self, fs, tmp_path):
        """Test that a file that is not a zip raises OSError."""
        (tmp_path / "broken.jar").write_bytes(b"definitely not a zip")

        with pytest.raises(OSError):
            fs.open_archive(str(tmp_path / "broken.jar"))

    def test_open_missing_archive_raises_oserror(self, fs, tmp_path):
        """Test that a missing archive raises OSError."""
        with pytest.raises(OSError):
            fs.open_archive(str(tmp_path / "missing.jar"))

    def test_missing_entry_raises_oserror(self, tmp_path):
        """Test that reading an absent entry raises OSError rather than KeyError."""
        write_zip(tmp_path / "lib.jar", {"X.class": ((2022, 1, 1, 0, 0, 0), b"x")})

        with ZipArchiveReader(str(tmp_path / "lib.jar")) as archive:
            with pytest.raises(OSError):
                archive.read_entry("Nope.class")


class TestZipTime:
    """Test cases for zip timestamp conversion."""

    def test_local_time_interpretation(self):
        """Test that zip times are read as local wall-clock time."""
        date_time = (2021, 6, 1, 12, 30, 10)

        expected = int(time.mktime((2021, 6, 1, 12, 30, 10, 0, 0, -1))) * 1000

        assert zip_time_to_millis(date_time) == expected

    def test_distinct_times_differ(self):
        """Test that different entry times map to different timestamps."""
        assert zip_time_to_millis((2020, 1, 1, 0, 0, 0)) < zip_time_to_millis((2020, 1, 1, 0, 0, 2))
