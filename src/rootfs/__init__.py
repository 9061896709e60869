"""
rootfs - Root-relative virtual paths and polling file watching

Address files through a root-relative, alias-aware path space and watch a
file or directory tree for changes without OS notification APIs.

Example:
    >>> from rootfs import FileSystem, Watcher, WatcherConfig
    >>> fs = FileSystem("/srv/app", aliases={"pub": "storage/public"})
    >>> fs.to_internal_path("pub/logo.png")
    '/srv/app/storage/public/logo.png'
"""

__version__ = "0.1.0"

# Path resolution
from .paths import AliasTable, PathResolver, clean_path, make_path, is_remote

# Events and listeners
from .events import (
    CallbackListener,
    EventType,
    FileSystemEvent,
    FileSystemListener,
    dispatch_event,
)

# Filesystem manager
from .filesystem import FileSystem, PathType

# Watcher
from .watcher import (
    DEFAULT_EXCLUDE_PATTERNS,
    Watcher,
    WatcherConfig,
    WatcherState,
    WatchedFileSystem,
)

# Configuration files
from .config import RootFSSettings, load_config

from .exceptions import (
    RootFSError,
    FileSystemConfigurationError,
    RootPathNotFoundError,
    FileSystemOperationError,
    EntityNotFoundError,
    EntityExistsError,
    DirectoryNotEmptyError,
    AccessDeniedError,
    WatcherError,
    WatcherNotBuiltError,
    WatcherConfigurationError,
)

__all__ = [
    "__version__",
    # Paths
    "AliasTable",
    "PathResolver",
    "clean_path",
    "make_path",
    "is_remote",
    # Events
    "CallbackListener",
    "EventType",
    "FileSystemEvent",
    "FileSystemListener",
    "dispatch_event",
    # Filesystem
    "FileSystem",
    "PathType",
    # Watcher
    "DEFAULT_EXCLUDE_PATTERNS",
    "Watcher",
    "WatcherConfig",
    "WatcherState",
    "WatchedFileSystem",
    # Config
    "RootFSSettings",
    "load_config",
    # Exceptions
    "RootFSError",
    "FileSystemConfigurationError",
    "RootPathNotFoundError",
    "FileSystemOperationError",
    "EntityNotFoundError",
    "EntityExistsError",
    "DirectoryNotEmptyError",
    "AccessDeniedError",
    "WatcherError",
    "WatcherNotBuiltError",
    "WatcherConfigurationError",
]
