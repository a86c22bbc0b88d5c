"""Directory scanner for path routing.

Produces sorted, immutable snapshots of a directory's immediate files and
sub-directories, and walks a tree pre-order using those snapshots.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from fastapi_routify.exceptions import RouteDiscoveryError


@dataclass(frozen=True)
class DirectoryListing:
    """Snapshot of one directory.

    Attributes:
        directory: The directory that was listed.
        files: File names in codepoint order.
        sub_directories: Sub-directory names in codepoint order.
    """

    directory: Path
    files: tuple[str, ...]
    sub_directories: tuple[str, ...]


def list_directory(directory: Path | str | None) -> DirectoryListing:
    """List the files and sub-directories immediately under a directory.

    Symlinks are classified by the type of their target. Entries that are
    neither files nor directories (broken links, sockets, ...) are dropped.
    Hidden entries are kept. Nothing is cached: each call reads the
    filesystem again.

    Args:
        directory: Directory to list.

    Returns:
        DirectoryListing with both name tuples sorted lexically.

    Raises:
        RouteDiscoveryError: If directory is empty, doesn't exist or isn't
            a directory.

    Examples:
        listing = list_directory("routes")
        listing.files            -> ("all.py", "get.py")
        listing.sub_directories  -> ("$id", "^auth", "owners")
    """
    if not directory:
        raise RouteDiscoveryError("A directory path is required")

    path = Path(directory)

    if not path.exists():
        raise RouteDiscoveryError(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise RouteDiscoveryError(f"Path is not a directory: {path}")

    files: list[str] = []
    sub_directories: list[str] = []

    # os.listdir never yields "." or ".."
    for name in os.listdir(path):
        entry = path / name
        if entry.is_file():
            files.append(name)
        elif entry.is_dir():
            sub_directories.append(name)

    return DirectoryListing(
        directory=path,
        files=tuple(sorted(files)),
        sub_directories=tuple(sorted(sub_directories)),
    )


def traverse(
    directory: Path | str | None,
    visit: Callable[[DirectoryListing], None],
) -> None:
    """Walk a directory tree depth-first, pre-order.

    ``visit`` receives the listing of ``directory`` before any of its
    sub-directories are walked, in the order they appear in the listing.
    There is no cycle detection, so symlink loops never terminate.

    Args:
        directory: Root of the walk.
        visit: Called once per directory with its listing.

    Raises:
        RouteDiscoveryError: If directory doesn't exist or isn't a directory.
    """
    listing = list_directory(directory)
    visit(listing)
    for name in listing.sub_directories:
        traverse(listing.directory / name, visit)
