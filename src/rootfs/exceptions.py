"""
rootfs Exception Hierarchy

This module defines the exceptions raised by the path resolver, the
filesystem manager and the polling watcher. Every error carries a stable
error code, a context dictionary and an optional suggestion so callers can
handle failures programmatically or log them as structured records.

The hierarchy is:

    RootFSError
    ├── FileSystemConfigurationError
    │   └── RootPathNotFoundError
    ├── FileSystemOperationError
    │   ├── EntityNotFoundError
    │   ├── EntityExistsError
    │   ├── DirectoryNotEmptyError
    │   └── AccessDeniedError
    └── WatcherError
        ├── WatcherNotBuiltError
        └── WatcherConfigurationError
"""

import time
from typing import Any, Dict, Optional


class RootFSError(Exception):
    """
    Base exception class for all rootfs errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        path: The path involved in the failure (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ROOTFS_ERROR",
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.path = path
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "path": self.path,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.path:
            parts.append(f"Path:{self.path}")
        parts.append(self.developer_message)
        return " ".join(parts)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class FileSystemConfigurationError(RootFSError):
    """Raised when a resolver, filesystem or config file is misconfigured."""

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "FILESYSTEM_CONFIGURATION_ERROR")
        super().__init__(message, error_code=error_code, **kwargs)


class RootPathNotFoundError(FileSystemConfigurationError):
    """Raised when the configured root path does not exist or is not a directory."""

    def __init__(self, root_path: str, **kwargs):
        self.root_path = root_path
        super().__init__(
            f'The directory "{root_path}" can\'t be located.',
            error_code="ROOT_PATH_NOT_FOUND",
            path=root_path,
            suggestion="Create the root directory before constructing the resolver.",
            **kwargs,
        )


# =============================================================================
# FILESYSTEM OPERATION ERRORS
# =============================================================================

class FileSystemOperationError(RootFSError):
    """
    Raised when a filesystem operation (read, write, move, ...) fails.

    Examples:
    - The OS refused to create a file
    - A copy destination directory is missing
    """

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        self.operation = operation
        error_code = kwargs.pop("error_code", "FILESYSTEM_OPERATION_ERROR")
        context = kwargs.pop("context", None) or {}
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code=error_code, context=context, **kwargs)


class EntityNotFoundError(FileSystemOperationError):
    """Raised when a file or directory does not exist."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            f'The file "{path}" doesn\'t exist.',
            error_code="ENTITY_NOT_FOUND",
            path=path,
            **kwargs,
        )


class EntityExistsError(FileSystemOperationError):
    """Raised when creating an entity that already exists."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            f'The entity "{path}" already exists.',
            error_code="ENTITY_EXISTS",
            path=path,
            **kwargs,
        )


class DirectoryNotEmptyError(FileSystemOperationError):
    """Raised when deleting a non-empty directory without ``recursive``."""

    def __init__(self, path: str, **kwargs):
        super().__init__(
            f'Cannot delete directory "{path}". The directory is not empty.',
            error_code="DIRECTORY_NOT_EMPTY",
            path=path,
            suggestion="Pass recursive=True to delete the directory and its content.",
            **kwargs,
        )


class AccessDeniedError(FileSystemOperationError):
    """Raised when the current process lacks permissions for an operation."""

    def __init__(self, path: str, action: str = "write", **kwargs):
        self.action = action
        super().__init__(
            f'Cannot {action} the file "{path}": permission denied',
            operation=action,
            error_code="ACCESS_DENIED",
            path=path,
            suggestion=f"Grant the current user {action} permission on the file.",
            **kwargs,
        )


# =============================================================================
# WATCHER ERRORS
# =============================================================================

class WatcherError(RootFSError):
    """Base class for polling watcher errors."""

    def __init__(self, message: str, **kwargs):
        error_code = kwargs.pop("error_code", "WATCHER_ERROR")
        super().__init__(message, error_code=error_code, **kwargs)


class WatcherNotBuiltError(WatcherError):
    """Raised when start/stop/restart is called before build()."""

    def __init__(self, action: str, **kwargs):
        self.action = action
        super().__init__(
            f"You must build the watcher before {action} it.",
            error_code="WATCHER_NOT_BUILT",
            context={"action": action},
            suggestion="Call build() before start(), stop() or restart().",
            **kwargs,
        )


class WatcherConfigurationError(WatcherError):
    """Raised for an invalid watch interval or an uncompilable pattern."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="WATCHER_CONFIGURATION_ERROR", **kwargs)
