"""
Filesystem manager rooted at a host directory.

``FileSystem`` pairs a ``PathResolver`` with the native operations callers
need. Every public method takes a user path (absolute, relative, aliased or
already internal), resolves it to an internal path and performs a plain OS
call on it. Mutating operations notify an optional listener.

Example:
    >>> fs = FileSystem("/srv/app", aliases={"pub": "storage/public"})
    >>> fs.write("pub/hello.txt", "hi")
    True
    >>> fs.read_dir("pub")
    {'hello.txt': '/srv/app/storage/public/hello.txt'}
"""

import atexit
import logging
import os
import re
import shutil
import tempfile
from enum import IntEnum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union
from urllib.parse import urlparse

from rootfs.events import FileSystemEvent, FileSystemListener, dispatch_event
from rootfs.exceptions import (
    AccessDeniedError,
    DirectoryNotEmptyError,
    EntityExistsError,
    EntityNotFoundError,
    FileSystemOperationError,
)
from rootfs.paths import PathResolver

logger = logging.getLogger(__name__)

_SIZE_UNITS = ["Kb", "Mb", "Gb", "Tb"]

# Temporary files created by tmpfile(), removed at interpreter exit
_tmp_files: Set[str] = set()


class PathType(IntEnum):
    """Form of the paths returned by ``FileSystem.read_dir``."""
    REAL = 1
    INTERNAL = 2
    EXTERNAL = 3
    FILESYSTEM = 4


class FileSystem:
    """
    Filesystem manager addressing files through a root-relative path space.

    Implements the operations the polling watcher relies on (``exists``,
    ``is_dir``, ``read_dir``, ``last_mod_time``, ``clean_path``) along with
    straightforward create/read/write/copy/move/delete pass-throughs.
    """

    def __init__(
        self,
        root_path: str = "./",
        working_dir: str = "./",
        temp_dir: str = "./tmp",
        aliases: Optional[Mapping[str, str]] = None,
        listener: Optional[FileSystemListener] = None,
        resolver: Optional[PathResolver] = None,
    ):
        """
        Initialize the filesystem manager.

        Args:
            root_path: Existing host directory used as the root
            working_dir: Root-relative directory for ``./`` paths
            temp_dir: Root-relative directory for temporary files
            aliases: Optional alias table (key -> target prefix)
            listener: Optional listener notified of mutations
            resolver: Use this resolver instead of building one from the
                      other path arguments

        Raises:
            RootPathNotFoundError: If ``root_path`` is not an existing directory
        """
        self.resolver = resolver or PathResolver(
            root_path=root_path,
            working_dir=working_dir,
            temp_dir=temp_dir,
            aliases=aliases,
        )
        self.listener = listener

    @classmethod
    def from_resolver(
        cls, resolver: PathResolver, listener: Optional[FileSystemListener] = None
    ) -> "FileSystem":
        """Create a filesystem manager sharing an existing resolver."""
        return cls(resolver=resolver, listener=listener)

    def set_listener(self, listener: Optional[FileSystemListener]) -> None:
        self.listener = listener

    # ========== Path Delegation ==========

    def clean_path(self, path: str) -> str:
        return self.resolver.clean_path(path)

    def make_path(self, *parts: str) -> str:
        return self.resolver.make_path(*parts)

    def is_remote(self, path: str) -> bool:
        return self.resolver.is_remote(path)

    def to_internal_path(self, path: str) -> str:
        return self.resolver.to_internal_path(path)

    def to_external_path(self, path: str) -> str:
        return self.resolver.to_external_path(path)

    def to_filesystem_path(self, path: str) -> str:
        return self.resolver.to_filesystem_path(path)

    def new_alias(self, key: str, target: str) -> None:
        self.resolver.add_alias(key, target)

    @property
    def root_path(self) -> str:
        return self.resolver.root_path

    # ========== Queries ==========

    def exists(self, path: str) -> bool:
        return os.path.exists(self.to_internal_path(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self.to_internal_path(path))

    def last_mod_time(self, path: str) -> int:
        """Return the modification time of ``path`` in integer epoch seconds."""
        return int(self._stat(path, "stat").st_mtime)

    def last_access_time(self, path: str) -> int:
        """Return the access time of ``path`` in integer epoch seconds."""
        return int(self._stat(path, "stat").st_atime)

    def size(self, path: str) -> int:
        """Return the size of a file, or the total size of a directory's files."""
        if self.is_dir(path):
            return sum(self.size(sub_path) for sub_path in self.read_dir(path).values())
        return self._stat(path, "size").st_size

    def size_human(self, path: str) -> str:
        """Return the size of ``path`` formatted like ``1.5Kb``."""
        size: Union[int, float] = self.size(path)
        unit = "b"
        for next_unit in _SIZE_UNITS:
            if size <= 1024:
                break
            size = size / 1024
            unit = next_unit
        return f"{round(size, 2):g}{unit}"

    def read_dir(
        self,
        path: str,
        recursive: bool = False,
        path_type: PathType = PathType.REAL,
        include: Optional[Union[str, Iterable[str]]] = None,
        exclude: Optional[Union[str, Iterable[str]]] = None,
    ) -> Dict[str, str]:
        """
        List a directory.

        Args:
            path: The directory to list
            recursive: Also list sub-directories; nested entries are keyed
                       ``subdir/name``
            path_type: Form of the returned paths
            include: Only keep entries with this extension (or one of these)
            exclude: Drop entries with this extension (or one of these)

        Returns:
            Mapping of entry name to path, sorted by name

        Raises:
            AccessDeniedError: If the directory cannot be read
            FileSystemOperationError: If the directory cannot be opened
        """
        internal_path = self.to_internal_path(path)
        if not self.is_remote(path) and not os.access(internal_path, os.R_OK):
            raise AccessDeniedError(path, action="read")

        include_set = _extension_set(include)
        exclude_set = _extension_set(exclude)

        try:
            names = os.listdir(internal_path)
        except OSError as e:
            logger.error(f"Error opening directory {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot open the directory "{path}"', operation="open", path=path
            ) from e

        files: Dict[str, str] = {}
        for name in names:
            entry_path = self.clean_path(self.make_path(internal_path, name))
            extension = self.extension(entry_path)

            if exclude_set is not None and extension in exclude_set:
                continue
            if include_set is not None and extension not in include_set:
                continue

            files[name] = self._convert(entry_path, path_type)

            # Symlinked directories are listed but not descended into
            if recursive and os.path.isdir(entry_path) and not os.path.islink(entry_path):
                sub_files = self.read_dir(
                    entry_path, recursive, path_type=path_type, include=include, exclude=exclude
                )
                for sub_name, sub_path in sub_files.items():
                    files[self.make_path(name, sub_name)] = sub_path

        return dict(sorted(files.items()))

    def read(self, path: str, encoding: str = "utf-8") -> str:
        """Read the text content of a file."""
        internal_path = self._local_internal_path(path, "read")
        if not os.access(internal_path, os.R_OK):
            raise AccessDeniedError(path, action="read")

        try:
            with open(internal_path, "r", encoding=encoding) as f:
                return f.read()
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot read the file "{path}"', operation="read", path=path
            ) from e

    # ========== Mutations ==========

    def write(self, path: str, data: str, append: bool = False, encoding: str = "utf-8") -> bool:
        """
        Write text to a file, creating it (and its parents) if needed.

        Args:
            path: The file to write
            data: Text content
            append: Append instead of truncating

        Returns:
            True on success
        """
        internal_path = self._local_internal_path(path, "write")

        if not append:
            if self.exists(path):
                if not os.access(internal_path, os.W_OK):
                    raise AccessDeniedError(path, action="write")
            else:
                self.mkfile(path, create_parent=True)

        try:
            with open(internal_path, "a" if append else "w", encoding=encoding) as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Error writing {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot write in the file "{path}"', operation="write", path=path
            ) from e

        self._notify(FileSystemEvent.modified(path))
        return True

    def mkfile(self, path: str, create_parent: bool = False) -> bool:
        """Create an empty file (or touch an existing one)."""
        parent_dir = self.dirname(path)

        if not self.exists(parent_dir):
            if create_parent:
                self.mkdir(parent_dir, recursive=True)
            else:
                raise FileSystemOperationError(
                    f'Cannot create file "{path}" (parent directory "{parent_dir}" doesn\'t exist)',
                    operation="mkfile",
                    path=path,
                )

        internal_path = self._local_internal_path(path, "mkfile")
        try:
            with open(internal_path, "a"):
                os.utime(internal_path, None)
        except OSError as e:
            logger.error(f"Error creating file {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot create file "{path}"', operation="mkfile", path=path
            ) from e

        self._notify(FileSystemEvent.created(path))
        return True

    def mkdir(self, path: str, recursive: bool = False) -> bool:
        """Create a directory, optionally creating missing parents."""
        internal_path = self._local_internal_path(path, "mkdir")

        if self.exists(internal_path):
            raise EntityExistsError(path, operation="mkdir")

        parent_dir = self.dirname(path)
        if not self.exists(parent_dir):
            if recursive:
                self.mkdir(parent_dir, recursive=True)
            else:
                raise FileSystemOperationError(
                    f'Cannot create directory "{path}" (parent directory "{parent_dir}" doesn\'t exist)',
                    operation="mkdir",
                    path=path,
                )

        try:
            os.mkdir(internal_path)
        except OSError as e:
            logger.error(f"Error creating directory {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot create directory "{path}"', operation="mkdir", path=path
            ) from e

        self._notify(FileSystemEvent.created(path))
        return True

    def delete(self, path: str, recursive: bool = False) -> bool:
        """
        Delete a file or directory.

        Raises:
            EntityNotFoundError: If ``path`` doesn't exist
            DirectoryNotEmptyError: If ``path`` is a non-empty directory and
                                    ``recursive`` is False
        """
        if not self.exists(path):
            raise EntityNotFoundError(path, operation="delete")

        internal_path = self.to_internal_path(path)
        try:
            if self.is_dir(path):
                sub_files = self.read_dir(path)
                if recursive:
                    for sub_path in sub_files.values():
                        self.delete(sub_path, recursive=True)
                elif sub_files:
                    raise DirectoryNotEmptyError(path, operation="delete")
                os.rmdir(internal_path)
            else:
                os.unlink(internal_path)
        except OSError as e:
            logger.error(f"Error deleting {path}: {e}")
            raise FileSystemOperationError(
                f'Cannot delete "{path}"', operation="delete", path=path
            ) from e

        self._notify(FileSystemEvent.deleted(path))
        return True

    def move(self, path: str, new_path: str) -> bool:
        """Move a file or directory. Moving a file onto a directory moves it inside."""
        if self.is_dir(new_path) and not self.is_dir(path):
            new_path = self.make_path(new_path, self.basename(path))

        dest_dirname = self.dirname(new_path)
        if not self.exists(dest_dirname):
            self.mkdir(dest_dirname, recursive=True)

        try:
            os.rename(self.to_internal_path(path), self.to_internal_path(new_path))
        except OSError as e:
            logger.error(f"Error moving {path} to {new_path}: {e}")
            raise FileSystemOperationError(
                f'Cannot move file from "{path}" to "{new_path}"', operation="move", path=path
            ) from e

        self._notify(FileSystemEvent.deleted(path))
        self._notify(FileSystemEvent.created(new_path))
        return True

    def rename(self, path: str, new_name: str) -> bool:
        """Rename an entity within its current directory."""
        return self.move(path, self.make_path(self.dirname(path), new_name))

    def copy(self, path: str, new_path: str) -> bool:
        """
        Copy a file or directory (recursively).

        Raises:
            FileSystemOperationError: If the destination's parent doesn't exist
        """
        if self.is_dir(new_path) and not self.is_dir(path):
            new_path = self.clean_path(self.make_path(new_path, self.basename(path)))

        dest_dirname = self.dirname(new_path)
        if not self.exists(dest_dirname):
            raise FileSystemOperationError(
                f'Cannot copy file from "{path}" to "{new_path}" : '
                f'destination directory "{dest_dirname}" doesn\'t exist',
                operation="copy",
                path=path,
            )

        if self.is_dir(path):
            if not self.exists(new_path):
                self.mkdir(new_path)
            for name in self.read_dir(path):
                self.copy(self.make_path(path, name), self.make_path(new_path, name))
            return True

        try:
            shutil.copyfile(self.to_internal_path(path), self.to_internal_path(new_path))
        except OSError as e:
            logger.error(f"Error copying {path} to {new_path}: {e}")
            raise FileSystemOperationError(
                f'Cannot copy file from "{path}" to "{new_path}"', operation="copy", path=path
            ) from e

        self._notify(FileSystemEvent.created(new_path))
        return True

    def tmpfile(self, prefix: str = "tmp") -> str:
        """
        Create a temporary file under the temp directory.

        The file is removed at interpreter exit if it still exists.

        Returns:
            Internal path of the created file
        """
        tmp_dir = self.to_internal_path(self.resolver.temp_dir)
        if not self.is_dir(tmp_dir):
            self.mkdir(tmp_dir, recursive=True)

        fd, tmp_path = tempfile.mkstemp(prefix=prefix, dir=tmp_dir)
        os.close(fd)
        tmp_path = self.clean_path(tmp_path)

        _tmp_files.add(tmp_path)
        return tmp_path

    # ========== Path Info ==========

    def dirname(self, path: str) -> str:
        """Return the parent of ``path``, or an empty string for a bare name."""
        if path.find("/", 1) != -1:
            dirname = re.sub(r"/[^/]*/?$", "", path, count=1)
        elif path.startswith("/"):
            dirname = "/"
        else:
            dirname = ""
        return "" if dirname == "." else dirname

    def basename(self, path: str) -> str:
        return os.path.basename(self.clean_path(path))

    def extension(self, path: str) -> str:
        """Return the extension of ``path``, or ``folder``/``file`` when it has none."""
        basename = self.basename(path)
        if "." in basename:
            return basename[basename.rindex(".") + 1:]
        return "folder" if self.is_dir(path) else "file"

    def filename(self, path: str) -> str:
        """Return the base name without its extension."""
        basename = self.basename(path)
        if "." not in basename:
            return basename
        return basename[:basename.rindex(".")]

    def remove_host_from_path(self, path: str) -> str:
        """Return only the path component of a URL."""
        return urlparse(path).path

    # ========== Internals ==========

    def _convert(self, path: str, path_type: PathType) -> str:
        if path_type == PathType.INTERNAL:
            return self.to_internal_path(path)
        if path_type == PathType.EXTERNAL:
            return self.to_external_path(path)
        if path_type == PathType.FILESYSTEM:
            return self.to_filesystem_path(path)
        return path

    def _local_internal_path(self, path: str, operation: str) -> str:
        if self.is_remote(path):
            raise FileSystemOperationError(
                f'Remote paths are not supported: "{path}"', operation=operation, path=path
            )
        return self.to_internal_path(path)

    def _stat(self, path: str, operation: str) -> os.stat_result:
        try:
            return os.stat(self.to_internal_path(path))
        except FileNotFoundError as e:
            raise EntityNotFoundError(path, operation=operation) from e
        except PermissionError as e:
            raise AccessDeniedError(path, action=operation) from e

    def _notify(self, event: FileSystemEvent) -> None:
        dispatch_event(self.listener, event)

    def __repr__(self) -> str:
        return f"FileSystem(root={self.root_path!r})"


def _extension_set(extensions: Optional[Union[str, Iterable[str]]]) -> Optional[List[str]]:
    if extensions is None:
        return None
    if isinstance(extensions, str):
        return [extensions]
    return list(extensions)


@atexit.register
def _remove_tmpfiles() -> None:
    while _tmp_files:
        tmp_path = _tmp_files.pop()
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
