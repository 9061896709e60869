"""
rootfs CLI - resolve virtual paths and watch files from the command line.

Usage:
    rootfs --help
    rootfs resolve pub/logo.png --root ./site --alias pub=storage/public
    rootfs watch ./uploads --root ./site --include '\\.png$' --interval 500
"""

import logging
import sys
from typing import Dict, Optional, Tuple

import click

from rootfs.config import RootFSSettings, load_config
from rootfs.events import FileSystemEvent, FileSystemListener
from rootfs.exceptions import RootFSError
from rootfs.utils import init_logging
from rootfs.watcher import DEFAULT_EXCLUDE_PATTERNS


def _parse_aliases(aliases: Tuple[str, ...]) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for alias in aliases:
        key, sep, target = alias.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {alias!r}", param_hint="--alias")
        parsed[key] = target
    return parsed


def _settings(config_file: Optional[str], root: Optional[str], aliases: Tuple[str, ...]) -> RootFSSettings:
    settings = load_config(config_file) if config_file else RootFSSettings()
    if root is not None:
        settings.filesystem.root = root
    settings.filesystem.aliases.update(_parse_aliases(aliases))
    return settings


class EchoListener(FileSystemListener):
    """Prints one line per event."""

    def on_created(self, event: FileSystemEvent) -> None:
        click.echo(f"created  {event.path}")

    def on_modified(self, event: FileSystemEvent) -> None:
        click.echo(f"modified {event.path}")

    def on_deleted(self, event: FileSystemEvent) -> None:
        click.echo(f"deleted  {event.path}")


@click.group()
@click.version_option(package_name="rootfs")
def main():
    """rootfs - root-relative virtual paths and polling file watching."""
    pass


@main.command()
@click.argument("path")
@click.option("--root", default=None, help="Root directory (default: config or current directory)")
@click.option("--alias", "aliases", multiple=True, metavar="KEY=VALUE", help="Register an alias")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML configuration file")
def resolve(path: str, root: Optional[str], aliases: Tuple[str, ...], config_file: Optional[str]):
    """Print the internal, external and filesystem forms of PATH.

    \b
    Examples:
        rootfs resolve ./docs/readme.md --root /srv/app
        rootfs resolve pub/logo.png --alias pub=storage/public
    """
    try:
        fs = _settings(config_file, root, aliases).build_filesystem()
    except RootFSError as e:
        click.echo(f"Error: {e.developer_message}", err=True)
        sys.exit(1)

    internal = fs.to_internal_path(path)
    click.echo(f"internal:   {internal}")
    click.echo(f"external:   {fs.to_external_path(internal)}")
    click.echo(f"filesystem: {fs.to_filesystem_path(internal)}")


@main.command()
@click.argument("path", required=False)
@click.option("--root", default=None, help="Root directory (default: config or current directory)")
@click.option("--alias", "aliases", multiple=True, metavar="KEY=VALUE", help="Register an alias")
@click.option("--recursive/--no-recursive", default=None, help="Watch sub-directories")
@click.option("--include", "include", multiple=True, metavar="REGEX", help="Only watch matching paths")
@click.option("--exclude", "exclude", multiple=True, metavar="REGEX", help="Ignore matching paths")
@click.option("--interval", type=click.IntRange(min=1), default=None, help="Milliseconds between ticks")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="YAML configuration file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def watch(
    path: Optional[str],
    root: Optional[str],
    aliases: Tuple[str, ...],
    recursive: Optional[bool],
    include: Tuple[str, ...],
    exclude: Tuple[str, ...],
    interval: Optional[int],
    config_file: Optional[str],
    verbose: bool,
):
    """Watch PATH for created, modified and deleted files until interrupted.

    \b
    Examples:
        rootfs watch ./uploads --root /srv/app
        rootfs watch --config rootfs.yaml --include '\\.py$'
    """
    init_logging(logging.DEBUG if verbose else logging.WARNING)

    try:
        settings = _settings(config_file, root, aliases)
        watcher_settings = settings.watcher
        if path is not None:
            watcher_settings.path = path
        if recursive is not None:
            watcher_settings.recursive = recursive
        if include:
            watcher_settings.include = list(include)
        if exclude:
            base = DEFAULT_EXCLUDE_PATTERNS if watcher_settings.exclude is None else watcher_settings.exclude
            watcher_settings.exclude = list(base) + list(exclude)
        if interval is not None:
            watcher_settings.interval_ms = interval

        fs = settings.build_filesystem()
        watcher = settings.build_watcher(fs, listener=EchoListener())
        watcher.build()
    except RootFSError as e:
        click.echo(f"Error: {e.developer_message}", err=True)
        sys.exit(1)

    click.echo(f"Watching {fs.to_internal_path(watcher.config.path)} (Ctrl+C to stop)")
    try:
        watcher.start()
    except KeyboardInterrupt:
        watcher.stop()
        click.echo("\nStopped.")


if __name__ == "__main__":
    main()
