"""Configuration management for KCD AutoPacker.

Stores and retrieves user settings from a JSON config file
in the platform-appropriate application data directory.
Command-line flags override these values for a single run.
"""

import json
import logging
from pathlib import Path
from typing import Any

from kcd_autopacker.exceptions import ConfigError
from kcd_autopacker.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from kcd_autopacker.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_EXTENSION = ".pak"
DEFAULT_GAME_PROCESS = "KingdomCome"
DEFAULT_ROOT_FOLDER = "Mods"

DEFAULT_CONFIG: dict[str, Any] = {
    "working_directory": "",  # Empty = current directory
    "release_directory": "",  # Empty = <working dir parent>/Mods-Dev/Release
    "archive_extension": DEFAULT_ARCHIVE_EXTENSION,
    "game_process_name": DEFAULT_GAME_PROCESS,
    "root_folder_name": DEFAULT_ROOT_FOLDER,
    "any_folder": False,  # skip the Mods folder name checks
    "pack_original_files": False,  # include *.original backups in archives
    # ---- diagnostics ----
    "print_error_stack": False,  # full tracebacks instead of one-line errors
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- folders ----

    @property
    def working_directory(self) -> str:
        """Return the Mods folder to watch (empty = current directory)."""
        return self._data["working_directory"]

    @working_directory.setter
    def working_directory(self, value: str) -> None:
        self._data["working_directory"] = value.strip()

    @property
    def release_directory(self) -> str:
        """Return the release output folder (empty = default location)."""
        return self._data["release_directory"]

    @release_directory.setter
    def release_directory(self, value: str) -> None:
        self._data["release_directory"] = value.strip()

    # ---- packing ----

    @property
    def archive_extension(self) -> str:
        """Return the archive extension, always with a leading dot."""
        raw = str(self._data.get("archive_extension") or "")
        ext = raw.strip().lstrip(".")
        return f".{ext}" if ext else DEFAULT_ARCHIVE_EXTENSION

    @property
    def pack_original_files(self) -> bool:
        """Return whether ``*.original`` backups are packed into archives."""
        return bool(self._data.get("pack_original_files", False))

    @pack_original_files.setter
    def pack_original_files(self, value: bool) -> None:
        self._data["pack_original_files"] = bool(value)

    # ---- game / folder checks ----

    @property
    def game_process_name(self) -> str:
        """Return the process name that locks the archives."""
        return str(self._data.get("game_process_name") or "").strip() or DEFAULT_GAME_PROCESS

    @property
    def root_folder_name(self) -> str:
        """Return the expected name of the working root folder."""
        return str(self._data.get("root_folder_name") or "").strip() or DEFAULT_ROOT_FOLDER

    @property
    def any_folder(self) -> bool:
        """Return whether the Mods folder name checks are bypassed."""
        return bool(self._data.get("any_folder", False))

    @any_folder.setter
    def any_folder(self, value: bool) -> None:
        self._data["any_folder"] = bool(value)

    # ---- diagnostics ----

    @property
    def print_error_stack(self) -> bool:
        """Return whether errors are logged with full tracebacks."""
        return bool(self._data.get("print_error_stack", False))

    @print_error_stack.setter
    def print_error_stack(self, value: bool) -> None:
        self._data["print_error_stack"] = bool(value)

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set the logging level name."""
        self._data["log_level"] = value.strip().upper() or "INFO"

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation (minimum 1)."""
        return max(1, int(self._data.get("max_log_size_mb", 10)))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return max(0, int(self._data.get("log_backup_count", 3)))

    # ---- convenience ----

    def resolve_working_directory(self, override: str | None = None) -> Path:
        """
        Return the absolute working directory for this run.

        *override* (from the command line) wins over the stored value,
        which wins over the current directory.  Unless ``any_folder`` is
        set, the path must contain the root folder name somewhere.
        """
        raw = override or self.working_directory or "."
        directory = Path(raw).expanduser().resolve()
        if not self.any_folder and self.root_folder_name.lower() not in str(directory).lower():
            raise ConfigError(
                f"Working directory must be inside the '{self.root_folder_name}' "
                f"directory. Use --any-folder to bypass. Directory: {directory}"
            )
        if not directory.is_dir():
            raise ConfigError(f"Working directory does not exist: {directory}")
        return directory

    def resolve_release_directory(
        self, working_directory: Path, override: str | None = None
    ) -> Path:
        """Return the release output folder, defaulting to ``Mods-Dev/Release``."""
        raw = override or self.release_directory
        if raw:
            return Path(raw).expanduser().resolve()
        return working_directory.parent / "Mods-Dev" / "Release"
