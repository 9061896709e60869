"""
Filesystem events and listeners.

Both the filesystem manager and the polling watcher report changes as
``FileSystemEvent`` records delivered to a listener. Delivery is gated:
``on_any`` sees every event first and the kind-specific handler only runs
when ``on_any`` returns True.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class EventType(IntEnum):
    """Kinds of filesystem events."""
    UNKNOWN = 0
    CREATE = 1
    MODIFY = 2
    DELETE = 3


@dataclass(frozen=True)
class FileSystemEvent:
    """A change observed on a file or directory."""
    event_type: EventType
    path: str
    timestamp: float = field(default_factory=time.time, compare=False)

    @classmethod
    def created(cls, path: str) -> "FileSystemEvent":
        return cls(EventType.CREATE, path)

    @classmethod
    def modified(cls, path: str) -> "FileSystemEvent":
        return cls(EventType.MODIFY, path)

    @classmethod
    def deleted(cls, path: str) -> "FileSystemEvent":
        return cls(EventType.DELETE, path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for logging/serialization."""
        return {
            "event_type": self.event_type.name.lower(),
            "path": self.path,
            "timestamp": self.timestamp,
        }


class FileSystemListener:
    """
    Base listener for filesystem events.

    Subclass and override the handlers you need. ``on_any`` accepts every
    event by default; return False from it to veto the specific handler.
    """

    def on_any(self, event: FileSystemEvent) -> bool:
        """Called for every event. Return True to propagate it."""
        return True

    def on_created(self, event: FileSystemEvent) -> None:
        """Called when a file or directory is created."""

    def on_modified(self, event: FileSystemEvent) -> None:
        """Called when a file is modified."""

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Called when a file or directory is deleted."""


class CallbackListener(FileSystemListener):
    """Listener assembled from plain callables.

    Example:
        >>> listener = CallbackListener(on_created=lambda e: print(e.path))
    """

    def __init__(
        self,
        on_any: Optional[Callable[[FileSystemEvent], bool]] = None,
        on_created: Optional[Callable[[FileSystemEvent], None]] = None,
        on_modified: Optional[Callable[[FileSystemEvent], None]] = None,
        on_deleted: Optional[Callable[[FileSystemEvent], None]] = None,
    ):
        self._on_any = on_any
        self._on_created = on_created
        self._on_modified = on_modified
        self._on_deleted = on_deleted

    def on_any(self, event: FileSystemEvent) -> bool:
        if self._on_any is None:
            return True
        return bool(self._on_any(event))

    def on_created(self, event: FileSystemEvent) -> None:
        if self._on_created is not None:
            self._on_created(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        if self._on_modified is not None:
            self._on_modified(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if self._on_deleted is not None:
            self._on_deleted(event)


def dispatch_event(listener: Optional[FileSystemListener], event: FileSystemEvent) -> bool:
    """
    Deliver an event through the ``on_any`` gate.

    Args:
        listener: The listener to notify, or None to only log the event
        event: The event to deliver

    Returns:
        True if the kind-specific handler was invoked
    """
    logger.debug(f"{event.event_type.name} {event.path}")

    if listener is None:
        return False

    if not listener.on_any(event):
        logger.debug(f"Listener vetoed {event.event_type.name} event for {event.path}")
        return False

    if event.event_type == EventType.CREATE:
        listener.on_created(event)
    elif event.event_type == EventType.MODIFY:
        listener.on_modified(event)
    elif event.event_type == EventType.DELETE:
        listener.on_deleted(event)
    else:
        return False
    return True
