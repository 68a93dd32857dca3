"""
Release packaging for KCD AutoPacker.

Bundles every mod that is under active development (has an
``.unpacked`` folder somewhere inside it) into a timestamped zip:

    <release root>/<Mod>/<Mod>-<yyyyMMdd-HHmmss>.zip

Entries are rooted at ``<Mod>/`` and contain only the packaged output,
never the ``.unpacked`` working folders.  Each release writes a new zip;
earlier releases are never touched.
"""

from __future__ import annotations

import logging
import os
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from kcd_autopacker.config import DEFAULT_ROOT_FOLDER
from kcd_autopacker.exceptions import ReleaseRefused
from kcd_autopacker.game import LockMonitor
from kcd_autopacker.packer import COMPRESSION, scan_files
from kcd_autopacker.paths import is_unpacked_name

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


@dataclass
class ReleaseSummary:
    """Counts for one release batch."""
    found: int = 0
    published: int = 0
    failed: int = 0
    empty: int = 0
    artifacts: list[Path] = field(default_factory=list)


def has_unpacked_folder(mod_dir: Path) -> bool:
    """Return True if any directory below *mod_dir* is an unpacked folder."""
    for _dirpath, dirnames, _filenames in os.walk(mod_dir):
        if any(is_unpacked_name(d) for d in dirnames):
            return True
    return False


class ReleaseBuilder:
    """
    Builds release zips for every mod in the working folder.

    Parameters
    ----------
    working_root : Path
        The Mods folder; each immediate sub-folder is one mod.
    release_root : Path
        Folder that receives ``<Mod>/<Mod>-<timestamp>.zip``.
    game_monitor : LockMonitor
        Releases are refused while the game is running.
    root_folder_name : str
        The working root's name must end with this unless *any_folder*.
    any_folder : bool
        Skip the root folder name check.
    pack_original_files : bool
        If True, ``*.original`` backups are included.
    print_error_stack : bool
        If True, per-mod failures are logged with a full traceback.
    clock : callable
        Returns the current time; the whole batch shares one timestamp.
    """

    def __init__(
        self,
        working_root: str | Path,
        release_root: str | Path,
        game_monitor: LockMonitor,
        root_folder_name: str = DEFAULT_ROOT_FOLDER,
        any_folder: bool = False,
        pack_original_files: bool = False,
        print_error_stack: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.working_root = Path(working_root)
        self.release_root = Path(release_root)
        self._game = game_monitor
        self._root_folder_name = root_folder_name
        self._any_folder = any_folder
        self._pack_original_files = pack_original_files
        self._print_error_stack = print_error_stack
        self._clock = clock

    def publish_all(self) -> ReleaseSummary | None:
        """
        Build a release zip for every mod under development.

        Returns the batch summary, or None if the release was refused.
        One mod failing never stops the others.
        """
        try:
            self._check_preconditions()
        except ReleaseRefused as exc:
            logger.warning("%s", exc)
            return None

        try:
            summary = self._publish_mods()
        except Exception as exc:
            logger.error(
                "Failed to publish a new release. Error: %s",
                exc,
                exc_info=self._print_error_stack,
            )
            return None

        self._log_summary(summary)
        return summary

    # ---- internals ----

    def _publish_mods(self) -> ReleaseSummary:
        self.release_root.mkdir(parents=True, exist_ok=True)
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        summary = ReleaseSummary()

        for mod_dir in sorted(p for p in self.working_root.iterdir() if p.is_dir()):
            if not has_unpacked_folder(mod_dir):
                continue
            summary.found += 1
            try:
                zip_path = self._release_path(mod_dir.name, timestamp)
                if self._build_mod_archive(mod_dir, zip_path):
                    summary.published += 1
                    summary.artifacts.append(zip_path)
                    logger.info("New release zip file created for mod: %s", mod_dir.name)
                    logger.info("%s", zip_path)
                else:
                    summary.empty += 1
            except Exception as exc:
                summary.failed += 1
                logger.error(
                    "Failed to publish the new release: %s Error: %s",
                    mod_dir,
                    exc,
                    exc_info=self._print_error_stack,
                )
        return summary

    def _check_preconditions(self) -> None:
        if not self._any_folder and not self.working_root.name.lower().endswith(
            self._root_folder_name.lower()
        ):
            raise ReleaseRefused(
                f"To create releases, the working directory must point to the "
                f"{self._root_folder_name} folder. Working directory: {self.working_root}"
            )
        if self._game.is_running():
            raise ReleaseRefused(
                "Game is running. Mod files are locked and may be out of sync."
            )

    def _release_path(self, mod_name: str, timestamp: str) -> Path:
        folder = self.release_root / mod_name
        folder.mkdir(parents=True, exist_ok=True)
        return folder / f"{mod_name}-{timestamp}.zip"

    def _build_mod_archive(self, mod_dir: Path, zip_path: Path) -> bool:
        """Write the release zip; return False if there was nothing to pack."""
        files = scan_files(
            mod_dir,
            include_backups=self._pack_original_files,
            skip_unpacked=True,
        )
        if not files:
            logger.info(
                "Skipping empty mod folder [%s] to avoid creating an empty archive.",
                mod_dir.name,
            )
            return False

        # Mode "x" never overwrites an earlier release
        zf = zipfile.ZipFile(
            zip_path, "x", compression=COMPRESSION, strict_timestamps=False
        )
        try:
            with zf:
                for disk in files.values():
                    zf.write(disk.path, f"{mod_dir.name}/{disk.name}")
                    logger.info("\tAdded: %s", disk.name)
        except BaseException:
            zip_path.unlink(missing_ok=True)
            raise
        return True

    @staticmethod
    def _log_summary(summary: ReleaseSummary) -> None:
        if summary.found == 0:
            logger.warning(
                "Couldn't find any mods with .unpacked folders to create a new release."
            )
        if summary.published == 0:
            logger.info("Failed to publish any mod releases.")
        elif summary.published == 1:
            logger.info("1 mod successfully published.")
        else:
            logger.info("%d mods successfully published.", summary.published)

        if summary.failed == 1:
            logger.info("Failed to publish 1 mod.")
        elif summary.failed > 1:
            logger.info("Failed to publish %d mods.", summary.failed)
        logger.info(
            "Release summary: %d found, %d published, %d failed.",
            summary.found,
            summary.published,
            summary.failed,
        )
