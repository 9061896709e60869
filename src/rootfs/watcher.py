"""Polling filesystem watcher.

The watcher detects creation, modification and deletion of files without
OS notification APIs. Each tick it re-lists the watched directory, diffs the
listing against the previous one and compares modification times against a
baseline captured on the previous tick.

Example:
    fs = FileSystem("/srv/app")
    watcher = Watcher(fs, listener=MyListener(), config=WatcherConfig(path="./uploads"))
    watcher.build().start()  # blocks until stop() is called from a listener
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Pattern, Protocol, runtime_checkable

from rootfs.events import FileSystemEvent, FileSystemListener, dispatch_event
from rootfs.exceptions import WatcherConfigurationError, WatcherNotBuiltError

logger = logging.getLogger(__name__)

# Version-control and dependency directory trees
DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    r"^.+[/\\]node_modules(?:[/\\].*)?$",
    r"^.+[/\\]\.git(?:[/\\].*)?$",
    r"^.+[/\\]\.svn(?:[/\\].*)?$",
    r"^.+[/\\]\.hg(?:[/\\].*)?$",
]


@runtime_checkable
class WatchedFileSystem(Protocol):
    """Filesystem operations the watcher polls."""

    def exists(self, path: str) -> bool: ...

    def is_dir(self, path: str) -> bool: ...

    def read_dir(self, path: str, recursive: bool = False) -> Dict[str, str]: ...

    def last_mod_time(self, path: str) -> int: ...

    def clean_path(self, path: str) -> str: ...


@dataclass
class WatcherConfig:
    """Configuration for a polling watcher."""
    path: str = "./"
    recursive: bool = True  # directory mode only
    include_patterns: List[str] = field(default_factory=list)  # empty matches everything
    exclude_patterns: List[str] = field(default_factory=lambda: DEFAULT_EXCLUDE_PATTERNS.copy())
    interval_ms: int = 1000

    def __post_init__(self):
        if self.interval_ms <= 0:
            raise WatcherConfigurationError(
                f"interval_ms must be positive, got {self.interval_ms}"
            )
        self.include_patterns = list(self.include_patterns)
        self.exclude_patterns = list(self.exclude_patterns)
        # Fail early on bad regexes
        compile_patterns(self.include_patterns)
        compile_patterns(self.exclude_patterns)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000


def compile_patterns(patterns: List[str]) -> List[Pattern[str]]:
    """Compile regular expressions, raising WatcherConfigurationError on bad input."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise WatcherConfigurationError(
                f"Invalid watch pattern {pattern!r}: {e}",
                context={"pattern": pattern},
            ) from e
    return compiled


class WatcherState(Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    STARTED = "started"
    STOPPED = "stopped"


class Watcher:
    """Watches a file or a directory tree for changes using polling.

    Lifecycle: ``build()`` snapshots the watched path, then ``start()`` runs
    ``process()`` followed by a blocking sleep until ``stop()`` clears the
    running flag. The flag is only observed after the current sleep ends.

    Watch set:
        - files cache: display name -> path, replaced by every directory listing
        - mtime cache: cleaned path -> epoch seconds, kept across ticks

    A file deleted between two ticks is still present in the previous files
    cache, so it is visited exactly once more, fires its delete event and
    then drops out.
    """

    def __init__(
        self,
        fs: WatchedFileSystem,
        listener: Optional[FileSystemListener] = None,
        config: Optional[WatcherConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the watcher.

        Args:
            fs: Filesystem to poll
            listener: Receives change events (events are only logged if None)
            config: Watch configuration (defaults to WatcherConfig())
            sleep: Function used to wait between ticks
        """
        self._fs = fs
        self._listener = listener
        self._config = config or WatcherConfig()
        self._sleep = sleep

        self._include = compile_patterns(self._config.include_patterns)
        self._exclude = compile_patterns(self._config.exclude_patterns)

        self._files_cache: Dict[str, str] = {}
        self._mtime_cache: Dict[str, int] = {}
        self._watching_directory = False

        self._built = False
        self._running = False
        self._state = WatcherState.UNBUILT

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> WatcherConfig:
        return self._config

    @property
    def listener(self) -> Optional[FileSystemListener]:
        return self._listener

    def set_listener(self, listener: FileSystemListener) -> Watcher:
        self._listener = listener
        return self

    def set_path(self, path: str) -> Watcher:
        self._config.path = path
        return self

    def set_recursive(self, recursive: bool) -> Watcher:
        self._config.recursive = recursive
        return self

    def add_pattern(self, pattern: str) -> Watcher:
        """Add a regex that paths must match to be watched."""
        self._include.extend(compile_patterns([pattern]))
        self._config.include_patterns.append(pattern)
        return self

    def add_exclude_pattern(self, pattern: str) -> Watcher:
        """Add a regex for paths to ignore."""
        self._exclude.extend(compile_patterns([pattern]))
        self._config.exclude_patterns.append(pattern)
        return self

    def set_patterns(self, patterns: List[str]) -> Watcher:
        self._include = compile_patterns(patterns)
        self._config.include_patterns = list(patterns)
        return self

    def set_exclude_patterns(self, patterns: List[str]) -> Watcher:
        self._exclude = compile_patterns(patterns)
        self._config.exclude_patterns = list(patterns)
        return self

    def set_watch_interval(self, interval_ms: int) -> Watcher:
        if interval_ms <= 0:
            raise WatcherConfigurationError(f"interval_ms must be positive, got {interval_ms}")
        self._config.interval_ms = interval_ms
        return self

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def watching_directory(self) -> bool:
        return self._watching_directory

    @property
    def files_cache(self) -> Dict[str, str]:
        return dict(self._files_cache)

    @property
    def mtime_cache(self) -> Dict[str, int]:
        return dict(self._mtime_cache)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def build(self) -> Watcher:
        """Snapshot the watched path and capture the mtime baseline.

        No-op if the watcher is already built.
        """
        if self._built:
            return self

        path = self._config.path
        self._watching_directory = False
        self._files_cache = {}
        self._mtime_cache = {}

        if self._fs.is_dir(path):
            self._files_cache = self._fs.read_dir(path, self._config.recursive)
            self._watching_directory = True
        elif self._fs.exists(path):
            self._add_for_watch(path)

        self._cache_last_mod_times()

        self._built = True
        self._state = WatcherState.BUILT
        logger.info(
            "Watcher built for %s (%s mode, %d entries)",
            path,
            "directory" if self._watching_directory else "file",
            len(self._files_cache),
        )
        return self

    def start(self) -> None:
        """Run the polling loop until stop() is called.

        Raises:
            WatcherNotBuiltError: If build() was never called
        """
        if not self._built:
            raise WatcherNotBuiltError("start")

        if self._running:
            logger.warning("Watcher already running")
            return

        self._running = True
        self._state = WatcherState.STARTED
        logger.info("Watcher started (interval: %dms)", self._config.interval_ms)

        try:
            while self._running:
                self.process()
                self._sleep(self._config.interval_seconds)
        finally:
            self._running = False
            self._state = WatcherState.STOPPED

        logger.info("Watcher loop exited")

    def stop(self) -> None:
        """Ask the polling loop to exit after its current sleep.

        Raises:
            WatcherNotBuiltError: If build() was never called
        """
        if not self._built:
            raise WatcherNotBuiltError("stop")

        self._running = False
        self._state = WatcherState.STOPPED
        self._cache_last_mod_times()
        logger.info("Watcher stopped")

    def restart(self) -> None:
        """Stop, rebuild from scratch and start again.

        Raises:
            WatcherNotBuiltError: If build() was never called
        """
        if not self._built:
            raise WatcherNotBuiltError("restart")

        self.stop()
        self._built = False
        self._state = WatcherState.UNBUILT
        self.build().start()

    def process(self) -> None:
        """Run one tick: detect changes, then re-baseline modification times.

        Errors raised by the filesystem propagate to the caller.
        """
        if self._watching_directory:
            self._watch_folder(self._config.path)
        else:
            self._watch_file(self._config.path)
        self._cache_last_mod_times()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def _watch_folder(self, path: str) -> None:
        directory = self._fs.read_dir(path, self._config.recursive)
        watching = {**self._files_cache, **directory}

        for entry_path in watching.values():
            if self._fs.is_dir(entry_path):
                continue
            self._watch_file(entry_path)

        self._files_cache = directory

    def _watch_file(self, raw_path: str) -> None:
        if not self._matches(raw_path):
            return

        path = self._fs.clean_path(raw_path)

        if self._fs.exists(path):
            if path in self._mtime_cache:
                if self._mtime_cache[path] < self._fs.last_mod_time(path):
                    self._emit(FileSystemEvent.modified(path))
            else:
                self._add_for_watch(raw_path)
                self._emit(FileSystemEvent.created(path))
        elif path in self._mtime_cache:
            self._remove_from_watch(raw_path)
            self._emit(FileSystemEvent.deleted(path))

    def _matches(self, path: str) -> bool:
        for pattern in self._exclude:
            if pattern.search(path):
                return False

        if not self._include:
            return True
        return any(pattern.search(path) for pattern in self._include)

    def _emit(self, event: FileSystemEvent) -> None:
        dispatch_event(self._listener, event)

    # ------------------------------------------------------------------
    # Watch set
    # ------------------------------------------------------------------

    def _cache_last_mod_times(self) -> None:
        for path in self._files_cache.values():
            cleaned = self._fs.clean_path(path)
            # Entries that vanished since the listing keep their old baseline
            # so the next tick reports the deletion.
            if self._fs.exists(cleaned):
                self._mtime_cache[cleaned] = self._fs.last_mod_time(cleaned)

    def _add_for_watch(self, path: str) -> None:
        cleaned = self._fs.clean_path(path)
        self._files_cache[path] = cleaned
        self._mtime_cache[cleaned] = self._fs.last_mod_time(cleaned)

    def _remove_from_watch(self, path: str) -> None:
        cleaned = self._fs.clean_path(path)
        self._files_cache.pop(path, None)
        for name, cached in list(self._files_cache.items()):
            if cached == cleaned:
                del self._files_cache[name]
        self._mtime_cache.pop(cleaned, None)

    def __repr__(self) -> str:
        return f"Watcher(path={self._config.path!r}, state={self._state.value})"
