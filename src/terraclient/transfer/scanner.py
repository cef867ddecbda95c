"""Directory scanning for uploads.

This module provides:
- scan_directory: Relative paths of all regular files below a root
- is_eligible: Whether a file is an image type the service accepts
- scan_eligible: scan_directory filtered by is_eligible
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePath

logger = logging.getLogger(__name__)

# Image formats accepted for reconstruction (compared case-insensitively)
ELIGIBLE_EXTENSIONS = frozenset({"jpg", "jpeg", "dng", "heic", "heif"})


def is_eligible(path: str | PurePath) -> bool:
    """Check whether a file has an accepted image extension."""
    suffix = PurePath(path).suffix
    return suffix[1:].lower() in ELIGIBLE_EXTENSIONS if suffix else False


def scan_directory(root: str | Path, follow_symlinks: bool = True) -> list[str]:
    """List every regular file below root as a relative POSIX path.

    Traversal uses an explicit stack, so deep trees do not grow the call
    stack. Entries are sorted, making the result deterministic for an
    unchanged tree. Each directory is entered at most once (keyed by device
    and inode), so symlink cycles terminate.

    Args:
        root: Directory to scan.
        follow_symlinks: Follow symlinked files and directories. When False,
            symlinks are skipped.

    Returns:
        Sorted relative paths, e.g. ``["DCIM/0001.JPG", "a.jpg"]``.

    Raises:
        NotADirectoryError: If root is not a directory.
        OSError: If a directory cannot be read.
    """
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    files: list[str] = []
    visited: set[tuple[int, int]] = set()
    stack: list[tuple[Path, PurePath]] = [(root_path, PurePath())]

    while stack:
        directory, relative_dir = stack.pop()
        stat = directory.stat()
        key = (stat.st_dev, stat.st_ino)
        if key in visited:
            logger.debug(f"Skipping already visited directory: {directory}")
            continue
        visited.add(key)

        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)

        subdirs: list[tuple[Path, PurePath]] = []
        for entry in entries:
            if entry.is_symlink() and not follow_symlinks:
                continue
            relative = relative_dir / entry.name
            try:
                if entry.is_dir(follow_symlinks=follow_symlinks):
                    subdirs.append((Path(entry.path), relative))
                elif entry.is_file(follow_symlinks=follow_symlinks):
                    files.append(relative.as_posix())
            except OSError as e:
                # Entry vanished or cannot be stat'ed
                logger.warning(f"Skipping unreadable entry {entry.path}: {e}")

        # Reverse so subdirectories are visited in name order
        stack.extend(reversed(subdirs))

    files.sort()
    return files


def scan_eligible(root: str | Path, follow_symlinks: bool = True) -> list[str]:
    """List the eligible image files below root."""
    eligible: list[str] = []
    for relative_path in scan_directory(root, follow_symlinks=follow_symlinks):
        if is_eligible(relative_path):
            eligible.append(relative_path)
        else:
            logger.debug(f"Skipping ineligible file: {relative_path}")
    return eligible
