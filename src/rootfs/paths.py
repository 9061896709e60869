"""Root-relative path resolution with alias support.

Three path forms are handled here:

- *internal* paths are root-prepended, alias-expanded and cleaned. They are the
  only form passed to native filesystem calls.
- *external* paths are root-stripped and alias-reduced, suitable for exposing
  to callers or URLs.
- *filesystem* paths are root-stripped and alias-expanded, with no leading
  separator.

Remote paths (anything containing ``://``) pass through every transformation
unchanged.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from rootfs.exceptions import RootPathNotFoundError

logger = logging.getLogger(__name__)

SEPARATOR = "/"

_LEADING_DOTS = re.compile(r"^\.+[/\\]")


def is_remote(path: str) -> bool:
    """Return True if ``path`` is a URI such as ``https://host/file``."""
    return "://" in path


def explode_path(path: str) -> List[str]:
    """Split a path on both ``/`` and ``\\`` separators."""
    return path.replace("\\", SEPARATOR).split(SEPARATOR)


def clean_path(path: str) -> str:
    """Normalize a path without touching the filesystem.

    ``.`` and empty segments are dropped and ``..`` pops the preceding segment
    (no-op when nothing precedes it). The result never has a trailing separator
    except for the root ``/`` itself. An empty result collapses to ``/`` for
    absolute input and ``.`` otherwise.

    Args:
        path: The path to clean

    Returns:
        The cleaned path, or ``path`` unchanged if it is remote
    """
    if is_remote(path):
        return path

    absolute = path[:1] in ("/", "\\")
    segments: List[str] = []
    for segment in explode_path(path):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)

    cleaned = SEPARATOR.join(segments)
    if not cleaned:
        return SEPARATOR if absolute else "."
    return SEPARATOR + cleaned if absolute else cleaned


def make_path(*parts: str) -> str:
    """Join path parts with ``/`` after trimming each part's trailing separators."""
    return SEPARATOR.join(part.rstrip("/\\") for part in parts)


class AliasTable:
    """Ordered, append-only table of path prefix substitutions.

    Each key is a short public prefix (e.g. ``pub``) and each target is the
    real storage prefix it stands for (e.g. ``storage/public``). Iteration
    follows registration order.
    """

    def __init__(self, aliases: Optional[Mapping[str, str]] = None) -> None:
        self._aliases: Dict[str, str] = {}
        for key, target in (aliases or {}).items():
            self.add(key, target)

    def add(self, key: str, target: str) -> None:
        """Register an alias. A single trailing ``/`` on the target is dropped."""
        if target.endswith(SEPARATOR):
            target = target[:-1]
        self._aliases[key] = target

    def items(self) -> List[Tuple[str, str]]:
        return list(self._aliases.items())

    def as_dict(self) -> Dict[str, str]:
        return dict(self._aliases)

    def expand(self, path: str) -> str:
        """Replace alias keys found as prefixes with their targets."""
        return self._substitute(path, [(key, target) for key, target in self.items()])

    def reduce(self, path: str) -> str:
        """Replace alias targets (rooted at ``/``) found as prefixes with their keys."""
        return self._substitute(
            path, [(SEPARATOR + target, key) for key, target in self.items()]
        )

    def _substitute(self, path: str, rules: List[Tuple[str, str]]) -> str:
        # A pass applies every matching rule in order. Passes repeat while at
        # least one rule applied, bounded by the number of aliases so chained
        # and cyclic tables both terminate.
        for _ in range(len(rules)):
            applied = 0
            for prefix, replacement in rules:
                if path.startswith(prefix):
                    path = make_path(replacement, path[len(prefix):])
                    applied += 1
            if not applied:
                break
        return path

    def __len__(self) -> int:
        return len(self._aliases)

    def __iter__(self) -> Iterator[str]:
        return iter(self._aliases)

    def __contains__(self, key: object) -> bool:
        return key in self._aliases

    def __repr__(self) -> str:
        return f"AliasTable({self._aliases!r})"


class PathResolver:
    """Converts between user, internal, external and filesystem path forms.

    Every resolver owns its own root, working directory, temporary directory
    and alias table; nothing is shared between instances.

    Example:
        >>> resolver = PathResolver("/srv/app", aliases={"pub": "storage/public"})
        >>> resolver.to_internal_path("pub/x.png")
        '/srv/app/storage/public/x.png'
        >>> resolver.to_external_path("/srv/app/storage/public/x.png")
        'pub/x.png'
        >>> resolver.to_filesystem_path("/srv/app/storage/public/x.png")
        'storage/public/x.png'
    """

    def __init__(
        self,
        root_path: str = "./",
        working_dir: str = "./",
        temp_dir: str = "./tmp",
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            root_path: Existing directory that all internal paths are rooted at
            working_dir: Root-relative directory used for ``./`` and ``../`` paths
            temp_dir: Root-relative directory used for temporary files
            aliases: Optional initial alias table (key -> target prefix)

        Raises:
            RootPathNotFoundError: If ``root_path`` is not an existing directory
        """
        root_path = str(root_path)
        if not os.path.isdir(root_path):
            raise RootPathNotFoundError(root_path)

        self._root_path = clean_path(os.path.realpath(clean_path(root_path)))
        self._working_dir = working_dir
        self._temp_dir = clean_path(temp_dir)
        self._aliases = AliasTable(aliases)

        logger.debug(
            "PathResolver rooted at %s (working_dir=%s, %d aliases)",
            self._root_path,
            self._working_dir,
            len(self._aliases),
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def root_path(self) -> str:
        return self._root_path

    @property
    def real_root_path(self) -> str:
        """The root with symlinks resolved, as seen by the OS right now."""
        return clean_path(os.path.realpath(self._root_path))

    @property
    def working_dir(self) -> str:
        return self._working_dir

    @working_dir.setter
    def working_dir(self, working_dir: str) -> None:
        self._working_dir = working_dir

    @property
    def temp_dir(self) -> str:
        return self._temp_dir

    @temp_dir.setter
    def temp_dir(self, temp_dir: str) -> None:
        self._temp_dir = clean_path(temp_dir)

    @property
    def aliases(self) -> Dict[str, str]:
        """A copy of the alias table in registration order."""
        return self._aliases.as_dict()

    def add_alias(self, key: str, target: str) -> None:
        """Register an alias mapping the ``key`` prefix to the ``target`` prefix."""
        self._aliases.add(key, target)
        logger.debug("Registered alias %r -> %r", key, target)

    # ------------------------------------------------------------------
    # Pure path helpers
    # ------------------------------------------------------------------

    @staticmethod
    def clean_path(path: str) -> str:
        return clean_path(path)

    @staticmethod
    def make_path(*parts: str) -> str:
        return make_path(*parts)

    @staticmethod
    def is_remote(path: str) -> bool:
        return is_remote(path)

    @staticmethod
    def explode_path(path: str) -> List[str]:
        return explode_path(path)

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def to_internal_path(self, path: str) -> str:
        """Convert a user path into an internal, root-prepended path.

        Args:
            path: Absolute, relative, aliased or already-internal path

        Returns:
            The cleaned internal path, or ``path`` unchanged if it is remote
        """
        if is_remote(path):
            return path

        internal_path = path
        stripped = self._strip_root(internal_path)
        if stripped is not None:
            internal_path = stripped

        if _LEADING_DOTS.match(internal_path):
            internal_path = make_path(self._working_dir, internal_path)

        internal_path = self._aliases.expand(internal_path)
        internal_path = make_path(self._root_path, internal_path)

        return clean_path(internal_path)

    def to_external_path(self, internal_path: str) -> str:
        """Convert an internal path into a root-stripped, alias-reduced path.

        Paths outside the root are returned unchanged.
        """
        if is_remote(internal_path):
            return internal_path

        external_path = self._strip_root(internal_path)
        if external_path is None:
            return internal_path
        if not external_path:
            return SEPARATOR
        if not external_path.startswith(("/", "\\")):
            return internal_path

        return clean_path(self._aliases.reduce(external_path))

    def to_filesystem_path(self, internal_path: str) -> str:
        """Convert an internal path into a root-relative canonical identifier."""
        if is_remote(internal_path):
            return internal_path

        filesystem_path = internal_path
        stripped = self._strip_root(filesystem_path)
        if stripped is not None:
            filesystem_path = stripped

        filesystem_path = self._aliases.expand(filesystem_path)

        while filesystem_path.startswith(("/", "./")):
            filesystem_path = filesystem_path[1:]

        return clean_path(filesystem_path)

    def _strip_root(self, path: str) -> Optional[str]:
        """Remove a leading root (configured or resolved form) from ``path``.

        Returns None when ``path`` does not live under the root. The prefix only
        matches on a segment boundary, so ``/srv/app2`` is not under ``/srv/app``.
        """
        for root in dict.fromkeys((self._root_path, self.real_root_path)):
            if root == SEPARATOR:
                if path.startswith(SEPARATOR):
                    return path
                continue
            if path == root:
                return ""
            if path.startswith(root) and path[len(root)] in "/\\":
                return path[len(root):]
        return None

    def __repr__(self) -> str:
        return (
            f"PathResolver(root={self._root_path!r}, "
            f"working_dir={self._working_dir!r}, aliases={len(self._aliases)})"
        )
