"""Path rules for unpacked mod folders.

An *unpacked folder* is any directory whose name ends in ``.unpacked``.
It is paired with a sibling archive of the same base name, e.g.
``Data/MyMod.unpacked`` is packed into ``Data/MyMod.pak``.

Everything here is a pure function of the path (plus, for the hidden
check, a single ``stat``) so the watcher can call it from its own thread
for every change notification.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from kcd_autopacker.platform_utils import has_hidden_attribute

logger = logging.getLogger(__name__)

UNPACKED_SUFFIX = ".unpacked"
TEMP_EXTENSION = ".tmp"
BACKUP_MARKER = ".original"


# ---- classification ----------------------------------------------------


def is_temp_or_hidden(path: str | Path) -> bool:
    """Return True for ``*.tmp`` files and files the OS marks as hidden.

    Never raises for a path that no longer exists.
    """
    ext = os.path.splitext(os.fspath(path))[1]
    if ext.lower() == TEMP_EXTENSION:
        return True
    return has_hidden_attribute(path)


def is_backup_file(path: str | Path) -> bool:
    """Return True if *path* is an ``*.original`` backup (case-insensitive)."""
    return BACKUP_MARKER in os.fspath(path).lower()


def is_unpacked_name(name: str) -> bool:
    """Return True if a single path segment names an unpacked folder."""
    return name.lower().endswith(UNPACKED_SUFFIX)


def is_under_reserved_subtree(path: str | Path) -> bool:
    """Return True if any segment of *path* ends with ``.unpacked``."""
    return any(is_unpacked_name(part) for part in Path(path).parts)


# ---- unpacked folder lookup ----------------------------------------------


def locate_sync_unit(changed_path: str | Path, root_dir: str | Path) -> Path | None:
    """
    Return the unpacked folder that owns *changed_path*, or None.

    The changed path may be the unpacked folder itself, any file or
    directory below it, or something unrelated.  Parents are walked
    upwards until one ends in ``.unpacked`` or the walk leaves *root_dir*.
    """
    path = os.path.abspath(os.fspath(changed_path))
    root = os.path.abspath(os.fspath(root_dir))

    # os.path.isdir() reports False for any OSError
    if is_unpacked_name(os.path.basename(path)) and os.path.isdir(path):
        return Path(path)

    current = os.path.dirname(path)
    while current and len(current) >= len(root):
        if is_unpacked_name(os.path.basename(current)):
            return Path(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def find_sync_units(root_dir: str | Path) -> list[Path]:
    """Return every unpacked folder below *root_dir*, in walk order."""
    units: list[Path] = []
    for dirpath, dirnames, _filenames in os.walk(root_dir):
        dirnames.sort()
        for name in dirnames:
            if is_unpacked_name(name):
                units.append(Path(dirpath, name).absolute())
    return units


def archive_path_for(unit: str | Path, archive_extension: str) -> Path:
    """Return the archive that *unit* is packed into."""
    unit = Path(unit)
    stem = unit.name[: -len(UNPACKED_SUFFIX)]
    return unit.parent / f"{stem}{archive_extension}"


def display_path(path: str | Path, root_dir: str | Path) -> str:
    """Return *path* relative to the working root for log messages."""
    try:
        return str(Path(path).relative_to(root_dir))
    except ValueError:
        return str(path)
