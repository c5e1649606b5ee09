"""Unit tests for the archive entry monitor."""

import os
import zipfile
from unittest.mock import Mock

import pytest
from hotswap_monitor.core import IArchiveReader, IErrorSink
from hotswap_monitor.filesystem import InMemoryFileSystem
from hotswap_monitor.models import ArchiveReadError, ChangeKind, ConfigurationError
from hotswap_monitor.monitoring import JarMonitor


class DamagedArchiveReader(IArchiveReader):
    """Reader whose entry directory cannot be decoded."""

    def entries(self):
        raise ValueError("invalid entry name")

    def read_entry(self, name):
        raise OSError(name)

    def close(self):
        pass


class TestJarMonitor:
    """Test cases for archive indexing and entry change detection."""

    @pytest.fixture
    def fs(self):
        fs = InMemoryFileSystem()
        fs.make_dirs("/w")
        return fs

    @pytest.fixture
    def error_sink(self):
        return Mock(spec=IErrorSink)

    @pytest.fixture
    def monitor(self, fs, error_sink):
        return JarMonitor("/w", filesystem=fs, error_sink=error_sink)

    @pytest.fixture
    def file_events(self, monitor):
        events = []
        monitor.file_monitor.add_added_listener(events.append)
        monitor.file_monitor.add_modified_listener(events.append)
        monitor.file_monitor.add_deleted_listener(events.append)
        return events

    def test_invalid_root_rejected(self, fs):
        """Test that the archive monitor validates its root like the file monitor."""
        with pytest.raises(ConfigurationError):
            JarMonitor("/nowhere", filesystem=fs)

    def test_new_archive_is_baseline(self, fs, monitor, file_events):
        """Test that a new archive yields one file-level addition and no entry events."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x"), "Y.class": (1, b"y")}, mtime=10)

        entry_events = monitor.scan()

        assert entry_events == []
        assert [(event.kind, event.relative_path) for event in file_events] == [(ChangeKind.ADDED, "lib.jar")]
        assert monitor.get_index("lib.jar") == {"X.class": 1, "Y.class": 1}

    def test_changed_entry_reported(self, fs, monitor, file_events):
        """Test that a changed entry inside a touched archive is reported once."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x"), "Y.class": (1, b"y")}, mtime=10)
        monitor.scan()
        file_events.clear()

        fs.write_archive("/w/lib.jar", {"X.class": (2, b"x2"), "Y.class": (1, b"y")}, mtime=20)
        entry_events = monitor.scan()

        assert [(event.kind, event.relative_path) for event in file_events] == [(ChangeKind.MODIFIED, "lib.jar")]
        assert [event.entry_name for event in entry_events] == ["X.class"]
        assert entry_events[0].archive.relative_path == "lib.jar"
        assert entry_events[0].timestamp == 2
        assert entry_events[0].read() == b"x2"
        assert monitor.get_index("lib.jar") == {"X.class": 2, "Y.class": 1}

    def test_entry_listeners_receive_events(self, fs, monitor):
        """Test that entry listeners are notified in registration order."""
        calls = []
        monitor.add_entry_modified_listener(lambda event: calls.append(("first", event.entry_name)))
        monitor.add_entry_modified_listener(lambda event: calls.append(("second", event.entry_name)))
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (5, b"x")}, mtime=11)
        monitor.scan()

        assert calls == [("first", "X.class"), ("second", "X.class")]

    def test_untouched_archive_is_not_reopened(self, fs, monitor):
        """Test that entry changes are only looked for when the archive timestamp changes."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (9, b"x")}, mtime=10)

        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 1}

    def test_new_entry_in_known_archive_is_baselined(self, fs, monitor):
        """Test that an entry appearing in a tracked archive is recorded without an event."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x"), "Z.class": (3, b"z")}, mtime=11)

        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 1, "Z.class": 3}

    def test_deleted_archive_discards_index(self, fs, monitor, file_events):
        """Test that deleting an archive drops its index."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.remove("/w/lib.jar")
        monitor.scan()

        assert monitor.get_index("lib.jar") is None
        assert monitor.tracked_archives() == []
        assert file_events[-1].kind == ChangeKind.DELETED

    def test_recreated_archive_is_baseline_again(self, fs, monitor):
        """Test that an archive deleted and re-added starts from a fresh baseline."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()
        fs.remove("/w/lib.jar")
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (7, b"x")}, mtime=30)

        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 7}

    def test_archives_in_subfolders(self, fs, monitor):
        """Test that archives are found recursively and keyed by relative path."""
        fs.write_archive("/w/ext/a.jar", {"A.class": (1, b"a")}, mtime=1)
        fs.write_file("/w/ext/readme.txt", mtime=1)

        monitor.scan()

        assert monitor.tracked_archives() == ["ext/a.jar"]

    def test_unreadable_archive_on_add_is_retried(self, fs, monitor, error_sink):
        """Test that an archive that cannot be opened at first sight is indexed on a later pass."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        real_open = fs.open_archive
        fs.open_archive = Mock(side_effect=PermissionError("busy"))

        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") is None
        reported = error_sink.report.call_args.args[0]
        assert isinstance(reported, ArchiveReadError)
        assert reported.path == "/w/lib.jar"

        fs.open_archive = real_open
        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 1}

    def test_unreadable_archive_on_modify_keeps_stale_index(self, fs, monitor, error_sink):
        """Test that a failed re-read keeps the old index and diffs against it later."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (2, b"x")}, mtime=11)
        real_open = fs.open_archive
        fs.open_archive = Mock(side_effect=OSError("truncated"))
        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 1}

        fs.open_archive = real_open
        entry_events = monitor.scan()
        assert [event.entry_name for event in entry_events] == ["X.class"]
        assert monitor.get_index("lib.jar") == {"X.class": 2}

    def test_corrupt_archive_reported_not_raised(self, fs, monitor, error_sink):
        """Test that a file with the archive extension that is not an archive is reported."""
        fs.write_file("/w/broken.jar", b"not a zip", mtime=1)

        assert monitor.scan() == []
        assert isinstance(error_sink.report.call_args.args[0], ArchiveReadError)

    def test_deleting_unreadable_archive_stops_retries(self, fs, monitor, error_sink):
        """Test that a deleted archive is no longer retried."""
        fs.write_file("/w/broken.jar", b"not a zip", mtime=1)
        monitor.scan()
        reports = error_sink.report.call_count

        fs.remove("/w/broken.jar")
        monitor.scan()
        monitor.scan()

        assert error_sink.report.call_count == reports

    def test_failing_entry_listener_is_isolated(self, fs, error_sink):
        """Test that a raising entry listener is reported and later listeners still run."""
        monitor = JarMonitor("/w", filesystem=fs, error_sink=error_sink)
        later = Mock()
        monitor.add_entry_modified_listener(Mock(side_effect=ValueError("bad")))
        monitor.add_entry_modified_listener(later)
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        monitor.scan()

        fs.write_archive("/w/lib.jar", {"X.class": (2, b"x")}, mtime=11)
        entry_events = monitor.scan()

        assert len(entry_events) == 1
        later.assert_called_once_with(entry_events[0])
        assert error_sink.report.call_args.args[0].context["entry"] == "X.class"

    def test_damaged_entry_directory_is_reported_and_retried(self, fs, monitor, error_sink):
        """Test that a non-OSError failure while enumerating entries is an archive read error."""
        fs.write_archive("/w/lib.jar", {"X.class": (1, b"x")}, mtime=10)
        real_open = fs.open_archive
        fs.open_archive = Mock(return_value=DamagedArchiveReader())

        assert monitor.scan() == []
        reported = error_sink.report.call_args.args[0]
        assert isinstance(reported, ArchiveReadError)
        assert reported.path == "/w/lib.jar"
        assert isinstance(reported.cause, ValueError)
        assert monitor.get_index("lib.jar") is None

        fs.open_archive = real_open
        assert monitor.scan() == []
        assert monitor.get_index("lib.jar") == {"X.class": 1}


class TestJarMonitorLocalFilesystem:
    """Test cases running the archive monitor against real zip files."""

    @staticmethod
    def write_jar(path, entries):
        with zipfile.ZipFile(path, "w") as jar:
            for name, (date_time, data) in entries.items():
                jar.writestr(zipfile.ZipInfo(name, date_time=date_time), data)

    def test_changed_entry_in_real_jar(self, tmp_path):
        """Test the baseline and update scenario with real zip files."""
        jar_path = tmp_path / "lib.jar"
        old = (2020, 1, 1, 0, 0, 0)
        new = (2021, 6, 1, 12, 0, 0)
        self.write_jar(jar_path, {"X.class": (old, b"x1"), "Y.class": (old, b"y1")})
        os.utime(jar_path, ns=(1_000_000_000_000, 1_000_000_000_000))

        monitor = JarMonitor(str(tmp_path))
        assert monitor.scan() == []
        assert set(monitor.get_index("lib.jar")) == {"X.class", "Y.class"}

        self.write_jar(jar_path, {"X.class": (new, b"x2"), "Y.class": (old, b"y1")})
        os.utime(jar_path, ns=(2_000_000_000_000, 2_000_000_000_000))
        entry_events = monitor.scan()

        assert [event.entry_name for event in entry_events] == ["X.class"]
        assert entry_events[0].read() == b"x2"

    def test_jar_with_empty_entry_name_is_retried(self, tmp_path):
        """Test that a jar whose directory holds an unnamed entry is reported and retried until fixed."""
        jar_path = tmp_path / "lib.jar"
        stamp = (2020, 1, 1, 0, 0, 0)
        try:
            self.write_jar(jar_path, {"": (stamp, b""), "X.class": (stamp, b"x")})
        except (IndexError, ValueError):
            pytest.skip("zipfile refuses to write an unnamed entry on this interpreter")
        os.utime(jar_path, ns=(1_000_000_000_000, 1_000_000_000_000))
        error_sink = Mock(spec=IErrorSink)
        monitor = JarMonitor(str(tmp_path), error_sink=error_sink)

        monitor.scan()
        monitor.scan()

        reported = [call.args[0] for call in error_sink.report.call_args_list]
        assert [error.error_code for error in reported] == ["ARCHIVE_READ_ERROR", "ARCHIVE_READ_ERROR"]
        assert reported[0].path == str(jar_path)
        assert monitor.get_index("lib.jar") is None

        self.write_jar(jar_path, {"X.class": (stamp, b"x")})
        os.utime(jar_path, ns=(1_000_000_000_000, 1_000_000_000_000))

        assert monitor.scan() == []
        assert set(monitor.get_index("lib.jar")) == {"X.class"}
        assert error_sink.report.call_count == 2
