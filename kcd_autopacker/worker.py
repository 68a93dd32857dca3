"""Background worker that drains the sync queue into the archives.

One worker thread owns all archive writes made by the watcher path.
Each cycle it waits for the game to exit, takes every distinct queued
folder and syncs them one after another, checking the game again before
each folder; folders not yet started when it appears wait for the next
cycle.  Folders that fail for any reason are queued
again for the next cycle; a failure is only logged when the same folder
also failed the cycle before, so short-lived locks from editors stay
quiet.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from pathlib import Path

from kcd_autopacker.exceptions import ReconcileError
from kcd_autopacker.game import LockMonitor
from kcd_autopacker.sync_queue import SyncQueue, unit_key

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0

COMPLETION_MESSAGE = "All unpacked mods have been processed. You can safely exit."


class WorkerState(enum.Enum):
    """What the worker is currently doing."""
    WAITING_FOR_GAME = "waiting_for_game"
    IDLE = "idle"
    RECONCILING = "reconciling"


class SyncWorker:
    """
    Drains a SyncQueue on a daemon thread.

    Parameters
    ----------
    queue : SyncQueue
        Folders waiting to be synced.
    reconcile : callable
        Syncs one folder; raises ReconcileError on failure.
    game_monitor : LockMonitor
        Archive writes are held back while ``is_running()`` is True.
    poll_interval : float
        Seconds between checks while waiting or idle.
    print_error_stack : bool
        If True, repeated failures are logged with a full traceback.
    """

    def __init__(
        self,
        queue: SyncQueue,
        reconcile: Callable[[Path], object],
        game_monitor: LockMonitor,
        poll_interval: float = POLL_INTERVAL,
        print_error_stack: bool = False,
    ):
        self._queue = queue
        self._reconcile = reconcile
        self._game = game_monitor
        self._poll_interval = poll_interval
        self._print_error_stack = print_error_stack
        self._failed: set[str] = set()
        self._state = WorkerState.IDLE
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start the worker thread."""
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True, name="SyncWorker")
        self._thread.start()
        logger.debug("Sync worker started.")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Ask the worker to stop and wait for the in-flight folder to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.debug("Sync worker stopped.")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def failed_units(self) -> set[str]:
        """Keys of the folders that failed on their most recent attempt."""
        return set(self._failed)

    # ---- main loop ----

    def run(self) -> None:
        """Process the queue until stop() is called."""
        while not self._stop.is_set():
            if not self.wait_for_game():
                break

            if self._queue.is_empty:
                self._state = WorkerState.IDLE
                self._stop.wait(self._poll_interval)
                continue

            try:
                clean = self.process_pending()
            except Exception:
                logger.exception("Unexpected error in sync worker")
                clean = False

            if not clean:
                self._stop.wait(self._poll_interval)
        self._state = WorkerState.IDLE

    def wait_for_game(self) -> bool:
        """Block while the game is running.

        Returns False if stop() was called while waiting.
        """
        if not self._game.is_running():
            return True

        self._state = WorkerState.WAITING_FOR_GAME
        logger.info("Game is running. Waiting for it to exit...")
        while self._game.is_running():
            if self._stop.wait(self._poll_interval):
                return False
        logger.info("Game has exited. Proceeding with sync...")
        self._state = WorkerState.IDLE
        return True

    def process_pending(self) -> bool:
        """
        Run one sync cycle over every distinct queued folder.

        Returns True if the cycle finished without failures (an empty
        queue counts as clean but logs nothing).
        """
        units = self._queue.drain_distinct()
        if not units:
            return True

        self._state = WorkerState.RECONCILING
        has_error = False
        pending = list(units)
        try:
            while pending:
                if self._stop.is_set() or self._game.is_running():
                    logger.debug("Holding back %d folder(s) until the next cycle.", len(pending))
                    has_error = True
                    break
                if not self._sync_one(pending.pop(0)):
                    has_error = True
        finally:
            for unit in pending:
                self._queue.enqueue(unit)
            self._state = WorkerState.IDLE

        if has_error:
            return False

        logger.info(COMPLETION_MESSAGE)
        return True

    def _sync_one(self, unit: Path) -> bool:
        """Reconcile *unit*; on any failure queue it again and return False."""
        key = unit_key(unit)
        try:
            self._reconcile(unit)
        except Exception as exc:
            self._queue.enqueue(unit)
            if key not in self._failed:
                self._failed.add(key)
                logger.debug("Sync of %s failed, retrying next cycle: %s", unit, exc)
                return False
            # Unexpected errors always log their traceback
            expected = isinstance(exc, ReconcileError)
            logger.error(
                "Failed to sync %s. Error: %s",
                unit,
                exc,
                exc_info=self._print_error_stack or not expected,
            )
            return False

        self._failed.discard(key)
        return True
