"""Application-level exception types.

Convention:
- ``ReconcileError``: a single unpacked folder could not be synced this
  cycle (archive locked by another program, folder vanished, permission
  denied, corrupt archive).  The sync worker re-queues the folder and only
  logs when the same folder fails twice in a row.
- ``ReleaseRefused``: a release was requested while its preconditions do
  not hold.  Reported as a warning; nothing is written.
- ``ConfigError``: the working directory cannot be used.  Fatal at start-up.
"""

from __future__ import annotations


class AutoPackerError(Exception):
    """Base class for every error raised by KCD AutoPacker."""


class ReconcileError(AutoPackerError):
    """Raised when an unpacked folder could not be synced to its archive."""


class ReleaseRefused(AutoPackerError):
    """Raised when a release cannot be built in the current state."""


class ConfigError(AutoPackerError):
    """Raised when the configured working directory cannot be used."""
