"""
Tests for the reload supervisor: stage, validate, commit or roll back.
"""

import os
import threading
import time
from typing import ClassVar, List
from unittest.mock import patch

import pytest

from hotconf import (
    ConfigurationRegistry,
    DirectorySource,
    FileOperationError,
    WatcherError,
    WatchState,
    formats,
)
from hotconf.supervisor import ReloadSupervisor
from conftest import ServerConfig, StringConfig, TypeCheckedConfig, write_json


class RecordingConfig(StringConfig):
    """Remembers every value that was announced through changed()."""

    changes: ClassVar[List[str]] = []

    def changed(self) -> None:
        RecordingConfig.changes.append(self.s)


@pytest.fixture
def loaded(registry, conf_dir):
    """Registry with conf/c.json = {"s": "abc"} registered as 'c'."""
    path = write_json(conf_dir / "c.json", {"s": "abc"})
    handle = registry.add("c", StringConfig)
    return registry, handle, path, conf_dir / "load" / "c.json"


class TestProcessChange:
    """Test single reloads driven synchronously."""

    def test_invalid_bytes_keep_value_and_file(self, loaded):
        """Test that unparseable shadow content is rejected."""
        registry, handle, path, shadow = loaded
        original = path.read_bytes()
        shadow.write_bytes(b"{ not json")

        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        assert handle.value.s == "abc"
        assert handle.revision == 1
        assert path.read_bytes() == original

    def test_valid_content_commits(self, loaded):
        """Test that valid shadow content replaces value and file."""
        registry, handle, path, shadow = loaded
        write_json(shadow, {"s": "xyz"})

        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert handle.value.s == "xyz"
        assert handle.revision == 2
        assert path.read_bytes() == shadow.read_bytes()

    def test_failed_validation_rolls_back(self, loaded):
        """Test that a value rejected by validate_config() is not published."""
        registry, handle, path, shadow = loaded
        original = path.read_bytes()
        write_json(shadow, {"s": ""})

        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        assert handle.value.s == "abc"
        assert path.read_bytes() == original
        entry = registry.supervisor.entries()[0]
        assert entry.rollback_count == 1
        assert "must not be empty" in entry.last_error
        assert entry.state is WatchState.STABLE

    def test_missing_item_rolls_back(self, registry, conf_dir):
        """Test content that no longer holds the bound configuration."""
        write_json(conf_dir / "app.json", {"web": {"s": "a"}})
        handle = registry.add("app.web", StringConfig)
        shadow = conf_dir / "load" / "app.json"
        write_json(shadow, {"other": {"s": "b"}})

        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        assert handle.value.s == "a"

    def test_duplicate_events_are_skipped(self, loaded):
        """Test that repeated notifications for one write commit once."""
        registry, handle, path, shadow = loaded
        write_json(shadow, {"s": "xyz"})

        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert registry.supervisor.process_change(shadow) is None
        assert handle.revision == 2

    def test_unchanged_shadow_is_skipped(self, loaded):
        """Test that the initial shadow copy does not trigger a reload."""
        registry, handle, path, shadow = loaded
        assert registry.supervisor.process_change(shadow) is None
        assert handle.revision == 1

    def test_rejected_content_is_not_retried(self, loaded):
        """Test that the same bad content is rejected only once."""
        registry, handle, path, shadow = loaded
        shadow.write_bytes(b"{")
        registry.supervisor.process_change(shadow)
        assert registry.supervisor.process_change(shadow) is None
        assert registry.supervisor.entries()[0].rollback_count == 1

    def test_recovery_after_rejection(self, loaded):
        """Test that a fixed shadow commits after a rejected one."""
        registry, handle, path, shadow = loaded
        shadow.write_bytes(b"{")
        registry.supervisor.process_change(shadow)
        write_json(shadow, {"s": "fixed"})

        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert handle.value.s == "fixed"

    def test_unwatched_path_is_ignored(self, loaded, tmp_path):
        """Test events for files that are not shadows."""
        registry, handle, path, shadow = loaded
        assert registry.supervisor.process_change(path) is None
        assert registry.supervisor.process_change(tmp_path / "other.json") is None

    def test_copy_failure_rolls_back(self, loaded):
        """Test that the value is kept when the file cannot be updated."""
        registry, handle, path, shadow = loaded
        original = path.read_bytes()
        write_json(shadow, {"s": "xyz"})

        with patch("hotconf.supervisor.write_atomic", side_effect=FileOperationError("disk full")):
            assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        assert handle.value.s == "abc"
        assert path.read_bytes() == original

        # the same content is retried once the file can be written again
        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert handle.value.s == "xyz"

    def test_decoder_exception_rolls_back(self, registry, conf_dir, monkeypatch):
        """Test that any decoder failure ends in a settled rollback."""
        def strict(data):
            if data.startswith(b"!"):
                raise ValueError("custom decoder rejects")
            return formats.decode_json(data)

        monkeypatch.setitem(formats._DECODERS, "strict", strict)
        write_json(conf_dir / "c.strict", {"s": "abc"})
        handle = registry.add("c", StringConfig)
        shadow = conf_dir / "load" / "c.strict"
        shadow.write_bytes(b"!{}")

        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        entry = registry.supervisor.entries()[0]
        assert entry.state is WatchState.STABLE
        assert entry.last_outcome is WatchState.ROLLED_BACK
        assert entry.rollback_count == 1
        assert "custom decoder rejects" in entry.last_error
        assert handle.value.s == "abc"

    def test_validator_type_error_rolls_back(self, registry, conf_dir):
        """Test that a TypeError from a field validator is a rejection."""
        write_json(conf_dir / "t.json", {"s": "good"})
        handle = registry.add("t", TypeCheckedConfig)
        shadow = conf_dir / "load" / "t.json"
        write_json(shadow, {"s": "bad"})

        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        entry = registry.supervisor.entries()[0]
        assert entry.state is WatchState.STABLE
        assert entry.rollback_count == 1
        assert "bad type" in entry.last_error
        assert handle.value.s == "good"

    def test_all_bindings_or_none(self, registry, conf_dir):
        """Test that one invalid configuration blocks the whole file."""
        write_json(conf_dir / "app.json", {"a": {"s": "a1"}, "b": {"port": 1}})
        handle_a = registry.add("app.a", StringConfig)
        handle_b = registry.add("app.b", ServerConfig)
        shadow = conf_dir / "load" / "app.json"

        write_json(shadow, {"a": {"s": "a2"}, "b": {"port": 0}})
        assert registry.supervisor.process_change(shadow) is WatchState.ROLLED_BACK
        assert handle_a.value.s == "a1"
        assert handle_b.value.port == 1

        write_json(shadow, {"a": {"s": "a2"}, "b": {"port": 2}})
        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert handle_a.value.s == "a2"
        assert handle_b.value.port == 2


class TestNotifications:
    """Test changed() hooks and change listeners."""

    def test_changed_hook_and_listener(self, registry, conf_dir):
        """Test that both run after a commit with the new value."""
        RecordingConfig.changes.clear()
        write_json(conf_dir / "c.json", {"s": "abc"})
        handle = registry.add("c", RecordingConfig)
        seen = []
        handle.add_change_listener(lambda h, old, new: seen.append((h.name, old.s, new.s)))

        write_json(conf_dir / "load" / "c.json", {"s": "new"})
        registry.supervisor.process_change(conf_dir / "load" / "c.json")

        assert RecordingConfig.changes == ["new"]
        assert seen == [("c", "abc", "new")]

    def test_failing_listener_does_not_undo_commit(self, loaded):
        """Test that listener errors are contained."""
        registry, handle, path, shadow = loaded

        def broken(h, old, new):
            raise RuntimeError("listener failed")

        handle.add_change_listener(broken)
        write_json(shadow, {"s": "xyz"})
        assert registry.supervisor.process_change(shadow) is WatchState.COMMITTED
        assert handle.value.s == "xyz"

    def test_removed_listener(self, loaded):
        """Test that a removed listener is not called."""
        registry, handle, path, shadow = loaded
        seen = []
        def listener(h, old, new):
            seen.append(new.s)

        handle.add_change_listener(listener)
        handle.remove_change_listener(listener)
        write_json(shadow, {"s": "xyz"})
        registry.supervisor.process_change(shadow)
        assert seen == []


class TestConcurrentReaders:
    """Test that readers never see an invalid value."""

    def test_readers_see_only_valid_values(self, loaded):
        """Test reads racing with commits and rollbacks."""
        registry, handle, path, shadow = loaded
        stop = threading.Event()
        bad_reads = []

        def reader():
            while not stop.is_set():
                if not handle.value.s:
                    bad_reads.append(handle.value)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(20):
                write_json(shadow, {"s": f"v{i}"})
                registry.supervisor.process_change(shadow)
                write_json(shadow, {"s": ""})
                registry.supervisor.process_change(shadow)
        finally:
            stop.set()
            thread.join(timeout=5.0)

        assert bad_reads == []
        assert handle.value.s == "v19"


class TestSupervisorLifecycle:
    """Test starting, stopping and the background worker."""

    def test_hot_reload_end_to_end(self, loaded):
        """Test that editing the shadow file reloads the value."""
        registry, handle, path, shadow = loaded
        registry.start()
        assert registry.supervisor.is_running()

        write_json(shadow, {"s": "reloaded"})

        max_wait = 5
        wait_time = 0
        while handle.value.s != "reloaded" and wait_time < max_wait:
            time.sleep(0.1)
            wait_time += 0.1

        assert handle.value.s == "reloaded"
        assert path.read_bytes() == shadow.read_bytes()

    def test_invalid_edit_end_to_end(self, loaded):
        """Test that a bad edit is rejected by the running supervisor."""
        registry, handle, path, shadow = loaded
        original = path.read_bytes()
        registry.start()

        write_json(shadow, {"s": ""})

        entry = registry.supervisor.entries()[0]
        max_wait = 5
        wait_time = 0
        while entry.rollback_count == 0 and wait_time < max_wait:
            time.sleep(0.1)
            wait_time += 0.1

        assert entry.rollback_count >= 1
        assert handle.value.s == "abc"
        assert path.read_bytes() == original

    def test_files_added_after_start_are_watched(self, registry, conf_dir):
        """Test registration while the supervisor is running."""
        registry.start()
        write_json(conf_dir / "late.json", {"s": "one"})
        handle = registry.add("late", StringConfig)

        write_json(conf_dir / "load" / "late.json", {"s": "second"})
        max_wait = 5
        wait_time = 0
        while handle.value.s != "second" and wait_time < max_wait:
            time.sleep(0.1)
            wait_time += 0.1

        assert handle.value.s == "second"

    def test_schedule_failure_registers_nothing(self, registry, conf_dir):
        """Test that a directory the observer cannot watch leaves no entry behind."""
        registry.start()
        write_json(conf_dir / "app.json", {"a": {"s": "x"}, "b": {"s": "y"}})
        observer = registry.supervisor._observer

        with patch.object(observer, "schedule", side_effect=OSError("inotify watch limit reached")):
            with pytest.raises(WatcherError, match="inotify watch limit reached"):
                registry.add("app.a", StringConfig)
        assert "app.a" not in registry
        assert registry.supervisor.entries() == []

        registry.add("app.b", StringConfig)
        shadow_dir = os.path.realpath(conf_dir / "load")
        assert shadow_dir in registry.supervisor._scheduled
        assert [b.handle.name for b in registry.supervisor.entries()[0].bindings] == ["app.b"]

    def test_stop(self, loaded):
        """Test that stop() ends the worker and drops later events."""
        registry, handle, path, shadow = loaded
        registry.start()
        registry.stop()
        assert not registry.supervisor.is_running()

        registry.supervisor.submit(shadow)
        assert registry.supervisor.wait_idle(timeout=0.5)

    def test_start_failure_raises_watcher_error(self, conf_dir, settings):
        """Test that a broken watch subsystem is fatal at start."""
        registry = ConfigurationRegistry([DirectorySource(conf_dir)], settings=settings)
        with patch.object(ReloadSupervisor, "_create_observer", side_effect=OSError("inotify limit")):
            with pytest.raises(WatcherError):
                registry.start()
        assert not registry.supervisor.is_running()

    def test_start_is_idempotent(self, registry):
        """Test that a second start() is a no-op."""
        registry.start()
        worker = registry.supervisor._worker
        registry.start()
        assert registry.supervisor._worker is worker

    def test_wait_idle(self, loaded):
        """Test that wait_idle returns once queued events are processed."""
        registry, handle, path, shadow = loaded
        registry.start()
        write_json(shadow, {"s": "queued"})
        registry.supervisor.submit(shadow)
        assert registry.supervisor.wait_idle(timeout=5.0)
        assert handle.value.s == "queued"
