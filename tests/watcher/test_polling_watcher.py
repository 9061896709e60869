"""
Tests for the rootfs.watcher module.

This module tests:
- WatcherConfig validation
- Directory-mode create/modify/delete detection
- Single-file mode detection
- Include/exclude pattern filtering
- The on_any delivery gate
- Lifecycle (build/start/stop/restart) and error propagation
"""

from unittest.mock import Mock

import pytest

from rootfs.events import EventType, FileSystemEvent
from rootfs.exceptions import WatcherConfigurationError, WatcherNotBuiltError
from rootfs.watcher import DEFAULT_EXCLUDE_PATTERNS, Watcher, WatcherConfig, WatcherState


def make_watcher(fs, listener, **config_kwargs):
    config_kwargs.setdefault("path", "/root")
    return Watcher(fs, listener=listener, config=WatcherConfig(**config_kwargs))


def event_paths(handler) -> list:
    return [call.args[0].path for call in handler.call_args_list]


# =============================================================================
# Configuration Tests
# =============================================================================

class TestWatcherConfig:
    """Tests for WatcherConfig validation."""

    def test_defaults(self):
        config = WatcherConfig()

        assert config.path == "./"
        assert config.recursive is True
        assert config.include_patterns == []
        assert config.exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
        assert config.interval_ms == 1000
        assert config.interval_seconds == 1.0

    def test_default_excludes_are_not_shared(self):
        first = WatcherConfig()
        first.exclude_patterns.append("x")
        assert "x" not in WatcherConfig().exclude_patterns

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_interval_rejected(self, interval):
        with pytest.raises(WatcherConfigurationError):
            WatcherConfig(interval_ms=interval)

    def test_invalid_regex_rejected(self):
        with pytest.raises(WatcherConfigurationError) as exc_info:
            WatcherConfig(include_patterns=["("])
        assert exc_info.value.context["pattern"] == "("

    def test_set_watch_interval_rejects_zero(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener)
        with pytest.raises(WatcherConfigurationError):
            watcher.set_watch_interval(0)

    def test_fluent_setters(self, memory_fs, listener):
        watcher = Watcher(memory_fs)

        result = (
            watcher.set_listener(listener)
            .set_path("/root/sub")
            .set_recursive(False)
            .add_pattern(r"\.txt$")
            .set_watch_interval(250)
        )

        assert result is watcher
        assert watcher.listener is listener
        assert watcher.config.path == "/root/sub"
        assert watcher.config.recursive is False
        assert watcher.config.include_patterns == [r"\.txt$"]
        assert watcher.config.interval_ms == 250


# =============================================================================
# Directory Mode Tests
# =============================================================================

class TestDirectoryMode:
    """Tests for change detection on a watched directory."""

    def test_build_snapshots_directory(self, memory_fs, listener):
        memory_fs.add_file("/root/a.txt", mtime=10)
        watcher = make_watcher(memory_fs, listener).build()

        assert watcher.watching_directory is True
        assert watcher.files_cache == {"a.txt": "/root/a.txt"}
        assert watcher.mtime_cache == {"/root/a.txt": 10}
        listener.on_any.assert_not_called()

    def test_created_fires_once(self, memory_fs, listener):
        """Test a new file yields exactly one created event."""
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher.process()
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/f.txt"]
        listener.on_modified.assert_not_called()
        listener.on_deleted.assert_not_called()
        event = listener.on_created.call_args.args[0]
        assert event.event_type == EventType.CREATE

    def test_modified_fires_when_mtime_increases(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.touch("/root/f.txt", mtime=101)
        watcher.process()
        watcher.process()

        assert event_paths(listener.on_modified) == ["/root/f.txt"]
        listener.on_created.assert_not_called()

    def test_same_mtime_is_not_a_modification(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.touch("/root/f.txt", mtime=100)
        watcher.process()

        listener.on_any.assert_not_called()

    def test_older_mtime_is_not_a_modification(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.touch("/root/f.txt", mtime=50)
        watcher.process()

        listener.on_modified.assert_not_called()
        assert watcher.mtime_cache["/root/f.txt"] == 50

    def test_deleted_fires_exactly_once(self, memory_fs, listener):
        """Test a deleted file fires one event and leaves both caches."""
        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.remove("/root/f.txt")
        watcher.process()

        assert event_paths(listener.on_deleted) == ["/root/f.txt"]
        assert "/root/f.txt" not in watcher.mtime_cache
        assert "/root/f.txt" not in watcher.files_cache.values()

        watcher.process()
        watcher.process()
        assert listener.on_deleted.call_count == 1

    def test_recreated_file_is_created_again(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=100)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.remove("/root/f.txt")
        watcher.process()
        memory_fs.add_file("/root/f.txt", mtime=200)
        watcher.process()

        assert listener.on_deleted.call_count == 1
        assert event_paths(listener.on_created) == ["/root/f.txt"]

    def test_multiple_changes_in_one_tick(self, memory_fs, listener):
        memory_fs.add_file("/root/keep.txt", mtime=1)
        memory_fs.add_file("/root/gone.txt", mtime=1)
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.touch("/root/keep.txt", mtime=2)
        memory_fs.remove("/root/gone.txt")
        memory_fs.add_file("/root/new.txt", mtime=3)
        watcher.process()

        assert event_paths(listener.on_modified) == ["/root/keep.txt"]
        assert event_paths(listener.on_deleted) == ["/root/gone.txt"]
        assert event_paths(listener.on_created) == ["/root/new.txt"]

    def test_directories_do_not_fire_events(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_dir("/root/empty")
        watcher.process()

        listener.on_any.assert_not_called()
        assert watcher.files_cache == {"empty": "/root/empty"}

    def test_recursive_detects_nested_files(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener, recursive=True).build()

        memory_fs.add_file("/root/sub/deep/f.txt")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/sub/deep/f.txt"]

    def test_non_recursive_ignores_nested_files(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener, recursive=False).build()

        memory_fs.add_file("/root/sub/f.txt")
        memory_fs.add_file("/root/top.txt")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/top.txt"]

    def test_deleted_directory_reports_itself_and_its_files(self, memory_fs, listener):
        memory_fs.add_file("/root/sub/a.txt")
        memory_fs.add_file("/root/sub/b.txt")
        watcher = make_watcher(memory_fs, listener).build()

        for path in ("/root/sub/a.txt", "/root/sub/b.txt", "/root/sub"):
            memory_fs.remove(path)
        watcher.process()

        assert sorted(event_paths(listener.on_deleted)) == [
            "/root/sub",
            "/root/sub/a.txt",
            "/root/sub/b.txt",
        ]


# =============================================================================
# Single File Mode Tests
# =============================================================================

class TestSingleFileMode:
    """Tests for watching a single file."""

    def test_build_registers_file(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=7)
        watcher = make_watcher(memory_fs, listener, path="/root/f.txt").build()

        assert watcher.watching_directory is False
        assert watcher.mtime_cache == {"/root/f.txt": 7}

    def test_modify_delete_recreate(self, memory_fs, listener):
        memory_fs.add_file("/root/f.txt", mtime=7)
        watcher = make_watcher(memory_fs, listener, path="/root/f.txt").build()

        memory_fs.touch("/root/f.txt", mtime=8)
        watcher.process()
        memory_fs.remove("/root/f.txt")
        watcher.process()
        watcher.process()
        memory_fs.add_file("/root/f.txt", mtime=9)
        watcher.process()

        assert listener.on_modified.call_count == 1
        assert listener.on_deleted.call_count == 1
        assert listener.on_created.call_count == 1

    def test_missing_file_reported_when_created(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener, path="/root/later.txt").build()
        assert watcher.mtime_cache == {}

        watcher.process()
        listener.on_any.assert_not_called()

        memory_fs.add_file("/root/later.txt")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/later.txt"]


# =============================================================================
# Pattern Tests
# =============================================================================

class TestPatterns:
    """Tests for include/exclude filtering."""

    def test_default_excludes_never_fire(self, memory_fs, listener):
        """Test version-control and dependency trees are ignored entirely."""
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/.git/HEAD", mtime=1)
        memory_fs.add_file("/root/web/node_modules/pkg/index.js", mtime=1)
        watcher.process()
        memory_fs.touch("/root/.git/HEAD", mtime=2)
        memory_fs.touch("/root/web/node_modules/pkg/index.js", mtime=2)
        watcher.process()
        memory_fs.remove("/root/.git/HEAD")
        memory_fs.remove("/root/web/node_modules/pkg/index.js")
        watcher.process()

        listener.on_any.assert_not_called()

    def test_similar_names_are_not_excluded(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/.gitignore")
        memory_fs.add_file("/root/node_modules_backup.txt")
        watcher.process()

        assert sorted(event_paths(listener.on_created)) == [
            "/root/.gitignore",
            "/root/node_modules_backup.txt",
        ]

    def test_custom_exclude(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener).build()
        watcher.add_exclude_pattern(r"\.tmp$")

        memory_fs.add_file("/root/scratch.tmp")
        memory_fs.add_file("/root/real.txt")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/real.txt"]

    def test_include_patterns_restrict_watch(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener, include_patterns=[r"\.py$", r"\.md$"]).build()

        memory_fs.add_file("/root/app.py")
        memory_fs.add_file("/root/README.md")
        memory_fs.add_file("/root/image.png")
        watcher.process()

        assert sorted(event_paths(listener.on_created)) == ["/root/README.md", "/root/app.py"]

    def test_exclude_wins_over_include(self, memory_fs, listener):
        watcher = make_watcher(
            memory_fs, listener, include_patterns=[r"\.js$"]
        ).build()

        memory_fs.add_file("/root/node_modules/x.js")
        memory_fs.add_file("/root/app.js")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/app.js"]

    def test_set_exclude_patterns_replaces_defaults(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener).build()
        watcher.set_exclude_patterns([])

        memory_fs.add_file("/root/.git/HEAD")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/.git/HEAD"]

    def test_set_patterns_replaces_includes(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener, include_patterns=[r"\.py$"]).build()
        watcher.set_patterns([r"\.txt$"])

        memory_fs.add_file("/root/a.py")
        memory_fs.add_file("/root/a.txt")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/a.txt"]


# =============================================================================
# Delivery Gate Tests
# =============================================================================

class TestDeliveryGate:
    """Tests for the on_any veto gate."""

    def test_veto_blocks_specific_handler(self, memory_fs, listener):
        """Test a False gate suppresses the handler but not cache updates."""
        listener.on_any.return_value = False
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/f.txt", mtime=5)
        watcher.process()

        listener.on_any.assert_called_once()
        listener.on_created.assert_not_called()
        assert watcher.mtime_cache == {"/root/f.txt": 5}

        memory_fs.touch("/root/f.txt", mtime=6)
        watcher.process()
        memory_fs.remove("/root/f.txt")
        watcher.process()

        assert listener.on_any.call_count == 3
        listener.on_modified.assert_not_called()
        listener.on_deleted.assert_not_called()
        assert watcher.mtime_cache == {}

    def test_gate_receives_the_event(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/f.txt")
        watcher.process()

        gated = listener.on_any.call_args.args[0]
        assert isinstance(gated, FileSystemEvent)
        assert gated.event_type == EventType.CREATE
        assert gated.path == "/root/f.txt"

    def test_selective_gate(self, memory_fs, listener):
        listener.on_any.side_effect = lambda event: event.path.endswith(".keep")
        watcher = make_watcher(memory_fs, listener).build()

        memory_fs.add_file("/root/a.keep")
        memory_fs.add_file("/root/b.drop")
        watcher.process()

        assert event_paths(listener.on_created) == ["/root/a.keep"]

    def test_no_listener_still_tracks_changes(self, memory_fs):
        watcher = Watcher(memory_fs, config=WatcherConfig(path="/root")).build()

        memory_fs.add_file("/root/f.txt", mtime=3)
        watcher.process()

        assert watcher.mtime_cache == {"/root/f.txt": 3}


# =============================================================================
# Lifecycle Tests
# =============================================================================

class TestLifecycle:
    """Tests for build/start/stop/restart."""

    @pytest.mark.parametrize("action", ["start", "stop", "restart"])
    def test_requires_build(self, memory_fs, listener, action):
        watcher = make_watcher(memory_fs, listener)

        with pytest.raises(WatcherNotBuiltError) as exc_info:
            getattr(watcher, action)()

        assert exc_info.value.action == action
        assert watcher.state == WatcherState.UNBUILT

    def test_build_is_idempotent(self, memory_fs, listener):
        watcher = make_watcher(memory_fs, listener)

        watcher.build()
        memory_fs.add_file("/root/f.txt")
        watcher.build()

        assert memory_fs.read_dir_calls == 1
        assert watcher.files_cache == {}
        assert watcher.state == WatcherState.BUILT

    def test_start_loops_until_stopped(self, memory_fs, listener):
        sleeps = []

        def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 1:
                memory_fs.add_file("/root/f.txt")
            elif len(sleeps) == 3:
                watcher.stop()

        watcher = Watcher(
            memory_fs,
            listener=listener,
            config=WatcherConfig(path="/root", interval_ms=250),
            sleep=fake_sleep,
        ).build()

        watcher.start()

        assert sleeps == [0.25, 0.25, 0.25]
        assert event_paths(listener.on_created) == ["/root/f.txt"]
        assert watcher.is_running is False
        assert watcher.state == WatcherState.STOPPED

    def test_stop_is_observed_after_sleep(self, memory_fs, listener):
        ticks = []

        def fake_sleep(seconds):
            ticks.append("sleep")
            watcher.stop()

        watcher = Watcher(
            memory_fs, listener=listener, config=WatcherConfig(path="/root"), sleep=fake_sleep
        ).build()
        original_process = watcher.process

        def counting_process():
            ticks.append("process")
            original_process()

        watcher.process = counting_process
        watcher.start()

        assert ticks == ["process", "sleep"]

    def test_start_while_running_is_noop(self, memory_fs, listener):
        calls = []

        def fake_sleep(seconds):
            calls.append(seconds)
            watcher.start()
            watcher.stop()

        watcher = Watcher(
            memory_fs, listener=listener, config=WatcherConfig(path="/root"), sleep=fake_sleep
        ).build()
        watcher.start()

        assert len(calls) == 1

    def test_restart_rebuilds_snapshot(self, memory_fs, listener):
        def fake_sleep(seconds):
            watcher.stop()

        watcher = Watcher(
            memory_fs, listener=listener, config=WatcherConfig(path="/root"), sleep=fake_sleep
        ).build()

        memory_fs.add_file("/root/f.txt", mtime=1)
        watcher.restart()

        # The file existed when the watcher was rebuilt, so it is baseline
        listener.on_created.assert_not_called()
        assert watcher.mtime_cache == {"/root/f.txt": 1}
        assert memory_fs.read_dir_calls == 3

    def test_filesystem_errors_propagate(self, listener):
        fs = Mock()
        fs.is_dir.return_value = True
        fs.read_dir.side_effect = [{}, OSError("disk gone")]
        watcher = Watcher(fs, listener=listener, config=WatcherConfig(path="/root")).build()

        with pytest.raises(OSError, match="disk gone"):
            watcher.process()

    def test_filesystem_errors_stop_the_loop(self, listener):
        fs = Mock()
        fs.is_dir.return_value = True
        fs.read_dir.side_effect = [{}, PermissionError("denied")]
        sleep = Mock()
        watcher = Watcher(
            fs, listener=listener, config=WatcherConfig(path="/root"), sleep=sleep
        ).build()

        with pytest.raises(PermissionError):
            watcher.start()
        sleep.assert_not_called()
        assert not watcher.is_running
        assert watcher.state == WatcherState.STOPPED

    def test_start_polls_again_after_error(self, listener):
        """Test a host can retry start() after a tick raised."""
        fs = Mock()
        fs.is_dir.return_value = True
        fs.read_dir.side_effect = [{}, PermissionError("denied"), {}, {}]
        watcher = Watcher(
            fs, listener=listener, config=WatcherConfig(path="/root"),
            sleep=lambda seconds: watcher.stop(),
        ).build()

        with pytest.raises(PermissionError):
            watcher.start()
        watcher.start()

        assert fs.read_dir.call_count == 3
        assert watcher.state == WatcherState.STOPPED
