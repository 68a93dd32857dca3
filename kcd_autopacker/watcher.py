"""File system watcher for KCD AutoPacker.

Uses the watchdog library to monitor the Mods folder recursively and
queues the unpacked folder that owns every changed path.  The handler
only classifies and enqueues; all archive work happens on the sync worker.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from kcd_autopacker.paths import (
    display_path,
    is_backup_file,
    is_temp_or_hidden,
    locate_sync_unit,
)
from kcd_autopacker.sync_queue import SyncQueue

logger = logging.getLogger(__name__)


class UnpackedChangeHandler(FileSystemEventHandler):
    """Watchdog handler that routes changes to the owning unpacked folder."""

    def __init__(
        self,
        working_root: str | Path,
        queue: SyncQueue,
        pack_original_files: bool = False,
    ):
        """Initialise the handler for the tree below *working_root*."""
        super().__init__()
        self._root = Path(working_root)
        self._queue = queue
        self._pack_original_files = pack_original_files

    def on_path_changed(self, path: str | Path) -> Path | None:
        """Queue the unpacked folder owning *path*; return it, or None if ignored."""
        if is_temp_or_hidden(path):
            return None
        if not self._pack_original_files and is_backup_file(path):
            return None

        unit = locate_sync_unit(path, self._root)
        if unit is None:
            return None
        self._queue.enqueue(unit)
        logger.debug(
            "Change in %s queued %s",
            display_path(path, self._root),
            display_path(unit, self._root),
        )
        return unit

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a new file or directory."""
        self.on_path_changed(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a modified file or directory."""
        self.on_path_changed(os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a deleted file or directory."""
        self.on_path_changed(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemMovedEvent) -> None:  # type: ignore[override]
        """Handle a rename: both the old and the new location may need a sync."""
        self.on_path_changed(os.fsdecode(event.src_path))
        self.on_path_changed(os.fsdecode(event.dest_path))


class FolderWatcher:
    """High-level watcher over the Mods folder.

    Usage:
        watcher = FolderWatcher(mods_dir, queue)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        working_root: str | Path,
        queue: SyncQueue,
        pack_original_files: bool = False,
    ):
        """Create a new folder watcher."""
        self.working_root = str(working_root)
        self._handler = UnpackedChangeHandler(working_root, queue, pack_original_files)
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the working folder."""
        if not os.path.isdir(self.working_root):
            logger.error("Working folder does not exist: %s", self.working_root)
            raise FileNotFoundError(
                f"Working folder does not exist: {self.working_root}"
            )

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, self.working_root, recursive=True)
        observer.start()
        logger.info("File watching started: %s", self.working_root)

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def handler(self) -> UnpackedChangeHandler:
        return self._handler
