"""
Configuration file support.

A rootfs configuration file is YAML with two optional sections:

    filesystem:
      root: ./data
      working_dir: ./
      temp_dir: ./tmp
      aliases:
        pub: storage/public
    watcher:
      path: ./
      recursive: true
      include: []
      exclude: null        # null keeps the default exclude patterns
      interval_ms: 1000

A relative ``root`` is resolved against the directory holding the file.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rootfs.events import FileSystemListener
from rootfs.exceptions import FileSystemConfigurationError
from rootfs.filesystem import FileSystem
from rootfs.watcher import DEFAULT_EXCLUDE_PATTERNS, Watcher, WatcherConfig

logger = logging.getLogger(__name__)


class FileSystemSettings(BaseModel):
    """Settings for the path resolver and filesystem manager."""

    root: str = Field("./", description="Root directory (must exist)")
    working_dir: str = Field("./", description="Root-relative working directory")
    temp_dir: str = Field("./tmp", description="Root-relative temporary directory")
    aliases: Dict[str, str] = Field(
        default_factory=dict, description="Alias key -> target prefix, in order"
    )

    model_config = ConfigDict(extra="forbid")


class WatcherSettings(BaseModel):
    """Settings for the polling watcher."""

    path: str = Field("./", description="File or directory to watch")
    recursive: bool = Field(True, description="Watch sub-directories (directory mode)")
    include: List[str] = Field(
        default_factory=list, description="Regexes paths must match (empty = all)"
    )
    exclude: Optional[List[str]] = Field(
        None, description="Regexes of paths to ignore (None = defaults)"
    )
    interval_ms: int = Field(1000, gt=0, description="Milliseconds between ticks")

    model_config = ConfigDict(extra="forbid")

    def to_watcher_config(self) -> WatcherConfig:
        exclude = DEFAULT_EXCLUDE_PATTERNS.copy() if self.exclude is None else self.exclude
        return WatcherConfig(
            path=self.path,
            recursive=self.recursive,
            include_patterns=list(self.include),
            exclude_patterns=list(exclude),
            interval_ms=self.interval_ms,
        )


class RootFSSettings(BaseModel):
    """Top-level configuration file schema."""

    filesystem: FileSystemSettings = Field(default_factory=FileSystemSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)

    model_config = ConfigDict(extra="forbid")

    @field_validator("filesystem", "watcher", mode="before")
    @classmethod
    def _empty_section(cls, value):
        # An empty YAML section ("watcher:") parses as None
        return {} if value is None else value

    def build_filesystem(self, listener: Optional[FileSystemListener] = None) -> FileSystem:
        settings = self.filesystem
        return FileSystem(
            root_path=settings.root,
            working_dir=settings.working_dir,
            temp_dir=settings.temp_dir,
            aliases=settings.aliases,
            listener=listener,
        )

    def build_watcher(
        self, fs: FileSystem, listener: Optional[FileSystemListener] = None
    ) -> Watcher:
        return Watcher(fs, listener=listener, config=self.watcher.to_watcher_config())


def load_config(path: Union[str, Path]) -> RootFSSettings:
    """
    Load and validate a YAML configuration file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated RootFSSettings

    Raises:
        FileSystemConfigurationError: If the file is missing, is not valid
                                      YAML or does not match the schema
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise FileSystemConfigurationError(
            f"Cannot read configuration file: {e}", path=str(path)
        ) from e
    except yaml.YAMLError as e:
        raise FileSystemConfigurationError(
            f"Invalid YAML in configuration file: {e}", path=str(path)
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FileSystemConfigurationError(
            "Configuration file must contain a mapping at the top level",
            path=str(path),
        )

    try:
        settings = RootFSSettings.model_validate(data)
    except ValidationError as e:
        raise FileSystemConfigurationError(
            f"Invalid configuration: {e}",
            path=str(path),
            context={"errors": e.errors(include_url=False)},
        ) from e

    root = settings.filesystem.root
    if not os.path.isabs(root):
        settings.filesystem.root = str((path.parent / root).resolve())

    logger.debug(f"Loaded configuration from {path}")
    return settings
