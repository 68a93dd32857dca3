"""
Archive sync engine for KCD AutoPacker.

Makes the entries of a ``.pak`` archive match the files of its
``.unpacked`` folder: entries for deleted files are removed, new files
are added, and files whose size or timestamp changed are re-packed.
Everything else is copied across untouched.

The zip format cannot drop an entry in place, so an update is written
to a temporary file next to the archive and swapped in with
``os.replace``.  Archives without changes are never opened for writing.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from kcd_autopacker.config import DEFAULT_ARCHIVE_EXTENSION
from kcd_autopacker.exceptions import ReconcileError
from kcd_autopacker.paths import (
    TEMP_EXTENSION,
    archive_path_for,
    display_path,
    is_backup_file,
    is_temp_or_hidden,
    is_under_reserved_subtree,
    is_unpacked_name,
)

logger = logging.getLogger(__name__)

# Zip entries store DOS times with 2-second resolution.
TIMESTAMP_TOLERANCE = 2.0

COMPRESSION = zipfile.ZIP_DEFLATED


@dataclass(frozen=True)
class DiskFile:
    """A file on disk together with the entry name it is packed under."""
    path: Path
    name: str
    size: int
    mtime: float

    @property
    def key(self) -> str:
        return entry_key(self.name)


@dataclass
class SyncResult:
    """Outcome of syncing one unpacked folder."""
    unit: Path
    archive: Path
    created: bool = False
    skipped_empty: bool = False
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.added or self.updated or self.removed)


def entry_key(name: str) -> str:
    """Return the case-insensitive lookup key for an entry name."""
    return name.replace("\\", "/").casefold()


def entry_mtime(info: zipfile.ZipInfo) -> float | None:
    """Return an entry's timestamp as a local-time epoch, or None if invalid."""
    try:
        return time.mktime(info.date_time + (0, 0, -1))
    except (OverflowError, ValueError):
        return None


def is_unchanged(
    entry_size: int,
    entry_time: float | None,
    disk_size: int,
    disk_time: float,
) -> bool:
    """Return True if an entry still matches its file on disk.

    Sizes must be equal and timestamps at most ``TIMESTAMP_TOLERANCE``
    seconds apart.
    """
    if entry_size != disk_size or entry_time is None:
        return False
    return abs(entry_time - disk_time) <= TIMESTAMP_TOLERANCE


def _raise(exc: OSError) -> None:
    raise exc


def scan_files(
    root: Path,
    include_backups: bool = False,
    skip_unpacked: bool = False,
) -> dict[str, DiskFile]:
    """
    Collect the packable files below *root*.

    Temp and hidden files are always skipped, ``*.original`` backups
    unless *include_backups* is set, and with *skip_unpacked* anything
    inside an ``.unpacked`` folder.  Keys are case-insensitive entry names.
    Walk and stat errors propagate.
    """
    files: dict[str, DiskFile] = {}
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        if skip_unpacked:
            dirnames[:] = [d for d in dirnames if not is_unpacked_name(d)]
        dirnames.sort()
        for filename in sorted(filenames):
            full = Path(dirpath, filename)
            rel = full.relative_to(root).as_posix()
            if is_temp_or_hidden(full):
                continue
            if not include_backups and is_backup_file(rel):
                continue
            if skip_unpacked and is_under_reserved_subtree(rel):
                continue
            st = full.stat()
            disk = DiskFile(path=full, name=rel, size=st.st_size, mtime=st.st_mtime)
            files[disk.key] = disk
    return files


def build_temp_archive(
    archive: Path,
    files: Iterable[DiskFile],
    source: zipfile.ZipFile | None = None,
    keep: Iterable[zipfile.ZipInfo] = (),
) -> Path:
    """
    Build the next version of *archive* in a temp file beside it.

    Entries in *keep* are copied from *source* with their original
    metadata, then every file in *files* is packed.  Returns the temp
    path; on failure the temp file is removed.
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f"{archive.stem}-", suffix=TEMP_EXTENSION, dir=archive.parent
    )
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        with zipfile.ZipFile(
            tmp, "w", compression=COMPRESSION, strict_timestamps=False
        ) as zout:
            for info in keep:
                if source is None:
                    raise ValueError("Kept entries need a source archive")
                zout.writestr(info, source.read(info))
            for disk in files:
                zout.write(disk.path, disk.name)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def swap_in(tmp: Path, archive: Path) -> None:
    """Replace *archive* with *tmp*; the temp file is removed on failure."""
    try:
        os.replace(tmp, archive)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class ArchiveSyncer:
    """
    Syncs unpacked folders into their archives.

    Parameters
    ----------
    working_root : Path
        The watched Mods folder; only used to shorten log messages.
    archive_extension : str
        Extension of the archive paired with each unpacked folder.
    pack_original_files : bool
        If True, ``*.original`` backups are packed like any other file.
    """

    def __init__(
        self,
        working_root: str | Path,
        archive_extension: str = DEFAULT_ARCHIVE_EXTENSION,
        pack_original_files: bool = False,
    ):
        self.working_root = Path(working_root)
        self._archive_extension = archive_extension
        self._pack_original_files = pack_original_files

    def archive_path(self, unit: str | Path) -> Path:
        return archive_path_for(unit, self._archive_extension)

    def reconcile(self, unit: str | Path) -> SyncResult:
        """
        Bring the archive of *unit* up to date with the folder contents.

        Raises ReconcileError if the folder or the archive cannot be read
        or written.  A folder with nothing to pack leaves the archive alone.
        """
        unit = Path(unit)
        archive = self.archive_path(unit)
        result = SyncResult(unit=unit, archive=archive)
        shown = display_path(unit, self.working_root)

        logger.info("Syncing pack file: %s", archive.name)
        try:
            if not unit.is_dir():
                raise FileNotFoundError(f"Unpacked folder not found: {unit}")

            disk_files = scan_files(unit, include_backups=self._pack_original_files)
            if not disk_files:
                logger.info(
                    "Skipping empty mod folder [%s] to avoid accidental archive deletion.",
                    shown,
                )
                result.skipped_empty = True
                return result

            if archive.exists():
                self._update_archive(archive, disk_files, result)
            else:
                self._create_archive(archive, disk_files, result)
        except (OSError, zipfile.BadZipFile, ValueError) as exc:
            raise ReconcileError(f"Failed to sync [{shown}]: {exc}") from exc

        if result.changed:
            logger.info("The package has been successfully synchronized: %s", archive.name)
        else:
            logger.info("No changes found for package: %s", archive.name)
        return result

    # ---- internals ----

    def _create_archive(
        self, archive: Path, disk_files: dict[str, DiskFile], result: SyncResult
    ) -> None:
        logger.info("Making a new package file: %s", archive.name)
        swap_in(build_temp_archive(archive, disk_files.values()), archive)
        result.created = True
        for disk in disk_files.values():
            result.added.append(disk.name)
            logger.info("\tAdded: %s", disk.name)

    def _update_archive(
        self, archive: Path, disk_files: dict[str, DiskFile], result: SyncResult
    ) -> None:
        with zipfile.ZipFile(archive) as zin:
            entries: dict[str, zipfile.ZipInfo] = {}
            for info in zin.infolist():
                key = entry_key(info.filename)
                # Duplicates and directory entries have no file to match
                if key not in disk_files or key in entries:
                    result.removed.append(info.filename)
                    continue
                entries[key] = info

            keep: list[zipfile.ZipInfo] = []
            to_write: list[DiskFile] = []
            for key, info in entries.items():
                disk = disk_files[key]
                if is_unchanged(info.file_size, entry_mtime(info), disk.size, disk.mtime):
                    keep.append(info)
                else:
                    result.updated.append(disk.name)
                    to_write.append(disk)
            for key, disk in disk_files.items():
                if key not in entries:
                    result.added.append(disk.name)
                    to_write.append(disk)

            if not result.changed:
                return
            tmp = build_temp_archive(archive, to_write, source=zin, keep=keep)

        # The source must be closed before it can be replaced on Windows
        swap_in(tmp, archive)
        for name in result.removed:
            logger.info("\tRemoved: %s", name)
        for name in result.updated:
            logger.info("\tUpdated: %s", name)
        for name in result.added:
            logger.info("\tAdded: %s", name)
