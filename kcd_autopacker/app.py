"""
Main application controller for KCD AutoPacker.

Ties together configuration, logging, the folder watcher, the sync
worker and the release builder, and runs the console command loop.

Cross-platform: Windows, macOS, and Linux.
"""

import logging
import logging.handlers
import sys
from collections.abc import Callable
from pathlib import Path

from kcd_autopacker import __app_name__, __version__
from kcd_autopacker.config import Config, get_log_path
from kcd_autopacker.exceptions import ConfigError
from kcd_autopacker.game import GameMonitor, LockMonitor
from kcd_autopacker.packer import ArchiveSyncer
from kcd_autopacker.paths import display_path, find_sync_units
from kcd_autopacker.release import ReleaseBuilder, ReleaseSummary
from kcd_autopacker.sync_queue import SyncQueue
from kcd_autopacker.watcher import FolderWatcher
from kcd_autopacker.worker import SyncWorker

logger = logging.getLogger(__name__)


class App:
    """
    Central orchestrator.

    Parameters
    ----------
    config : Config
        Stored settings, already merged with command-line overrides.
    working_directory, release_directory : str, optional
        Command-line folder overrides for this run.
    game_monitor : LockMonitor, optional
        Replaces the process-table check (used by tests).
    """

    def __init__(
        self,
        config: Config,
        working_directory: str | None = None,
        release_directory: str | None = None,
        game_monitor: LockMonitor | None = None,
    ) -> None:
        self.config = config
        self._working_override = working_directory
        self._release_override = release_directory
        self.game: LockMonitor = game_monitor or GameMonitor(config.game_process_name)
        self.queue = SyncQueue()
        self.working_root: Path | None = None
        self.syncer: ArchiveSyncer | None = None
        self.worker: SyncWorker | None = None
        self.watcher: FolderWatcher | None = None
        self.releaser: ReleaseBuilder | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Resolve the folders and build every component.

        Raises ConfigError if the working directory is unusable.
        """
        cfg = self.config
        root = cfg.resolve_working_directory(self._working_override)
        release_root = cfg.resolve_release_directory(root, self._release_override)
        self.working_root = root

        self.syncer = ArchiveSyncer(
            working_root=root,
            archive_extension=cfg.archive_extension,
            pack_original_files=cfg.pack_original_files,
        )
        self.worker = SyncWorker(
            queue=self.queue,
            reconcile=self.syncer.reconcile,
            game_monitor=self.game,
            print_error_stack=cfg.print_error_stack,
        )
        self.watcher = FolderWatcher(root, self.queue, cfg.pack_original_files)
        self.releaser = ReleaseBuilder(
            working_root=root,
            release_root=release_root,
            game_monitor=self.game,
            root_folder_name=cfg.root_folder_name,
            any_folder=cfg.any_folder,
            pack_original_files=cfg.pack_original_files,
            print_error_stack=cfg.print_error_stack,
        )

    def run(self, read_line: Callable[[str], str] = input) -> int:
        """Start syncing and run the console command loop; return the exit code."""
        self._setup_logging()
        logger.info("%s %s starting.", __app_name__, __version__)

        try:
            self.setup()
        except ConfigError as exc:
            logger.error("%s", exc)
            return 1
        logger.info("Working directory: %s", self.working_root)

        try:
            self.start_sync()
        except FileNotFoundError as exc:
            logger.error("Cannot start sync: %s", exc)
            return 1

        try:
            self.command_loop(read_line)
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            self.stop_sync()
        return 0

    def release_once(self) -> int:
        """Build a single release without starting the watcher."""
        self._setup_logging()
        try:
            self.setup()
        except ConfigError as exc:
            logger.error("%s", exc)
            return 1
        summary = self.publish_release()
        return 0 if summary is not None and summary.failed == 0 else 1

    # ------------------------------------------------------------------
    # Sync control
    # ------------------------------------------------------------------

    def initial_sync(self) -> int:
        """Queue every existing unpacked folder; return how many were found."""
        if self.working_root is None:
            raise RuntimeError("setup() must be called before initial_sync()")
        units = find_sync_units(self.working_root)
        for unit in units:
            self.queue.enqueue(unit)
            logger.debug("Queued %s", display_path(unit, self.working_root))
        logger.info("Found %d unpacked folder(s).", len(units))
        return len(units)

    def start_sync(self) -> None:
        """Queue existing folders, then start the worker and the watcher."""
        if self.worker is None or self.watcher is None:
            raise RuntimeError("setup() must be called before start_sync()")
        self.initial_sync()
        self.worker.start()
        self.watcher.start()

    def stop_sync(self) -> None:
        """Stop the watcher, then let the worker finish its current folder."""
        if self.watcher:
            self.watcher.stop()
        if self.worker:
            self.worker.stop()
        logger.info("Sync stopped.")

    def publish_release(self) -> ReleaseSummary | None:
        """Run the release builder on the calling thread."""
        if self.releaser is None:
            raise RuntimeError("setup() must be called before publish_release()")
        return self.releaser.publish_all()

    # ------------------------------------------------------------------
    # Console
    # ------------------------------------------------------------------

    def command_loop(self, read_line: Callable[[str], str] = input) -> None:
        """Read operator commands until an empty line is entered."""
        print("Type 'r' and press ENTER to create a new release.")
        print("Press ENTER to exit...")
        while True:
            command = read_line("").strip().lower()
            if not command:
                return
            if command != "r":
                print(f"Unknown command: {command}")
                continue

            answer = read_line(
                "Confirm new release creation by pressing ENTER, "
                "or type anything else to cancel... "
            )
            if answer.strip():
                print("Release creation cancelled.")
            else:
                self.publish_release()

    def _setup_logging(self) -> None:
        """Configure rotating file log and stderr handler."""
        log_path = get_log_path()
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

        # Rotating file handler
        max_bytes = self.config.max_log_size_mb * 1024 * 1024
        fh = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=max_bytes,
            backupCount=self.config.log_backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

        # Console output is the main operator view
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)
        root_logger.addHandler(sh)
