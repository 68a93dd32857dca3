"""Detects whether the game is running and therefore holding the archives open."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from kcd_autopacker.config import DEFAULT_GAME_PROCESS
from kcd_autopacker.platform_utils import is_process_running

logger = logging.getLogger(__name__)


class LockMonitor(Protocol):
    """Anything that can tell whether archive writes must wait."""

    def is_running(self) -> bool:
        """Return True while archives must not be modified."""
        ...


class GameMonitor:
    """Polls the OS process table for the game executable.

    Parameters
    ----------
    process_name : str
        Executable name without extension, e.g. ``'KingdomCome'``.
    probe : callable, optional
        Replaces the process-table lookup; receives the process name.
    """

    def __init__(
        self,
        process_name: str = DEFAULT_GAME_PROCESS,
        probe: Callable[[str], bool] | None = None,
    ):
        self.process_name = process_name
        self._probe = probe or is_process_running

    def is_running(self) -> bool:
        """Return True if the game process is alive."""
        running = self._probe(self.process_name)
        logger.debug("Game process %s running: %s", self.process_name, running)
        return running
