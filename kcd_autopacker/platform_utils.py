"""
Cross-platform utilities for KCD AutoPacker.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - Windows 10/11 (the game's native platform)
  - macOS 12+
  - Linux (Steam Proton / Wine installs)
"""

from __future__ import annotations

import logging
import os
import stat
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\KCDAutoPacker``
    - macOS   : ``~/Library/Application Support/KCDAutoPacker``
    - Linux   : ``$XDG_CONFIG_HOME/KCDAutoPacker`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / "KCDAutoPacker"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "kcd_autopacker.log"


# ---- file attributes ---------------------------------------------------


def has_hidden_attribute(path: str | Path) -> bool:
    """Return True if the filesystem marks *path* as hidden.

    Dot-files count as hidden everywhere.  On Windows the
    ``FILE_ATTRIBUTE_HIDDEN`` bit is checked and on macOS the ``UF_HIDDEN``
    flag.  A path that cannot be stat'ed is reported as not hidden.
    """
    if os.path.basename(os.fspath(path)).startswith("."):
        return True
    if not (IS_WINDOWS or IS_MACOS):
        return False
    try:
        st = os.stat(path)
    except OSError:
        return False
    if IS_WINDOWS:
        attrs = getattr(st, "st_file_attributes", 0)
        return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)
    return bool(getattr(st, "st_flags", 0) & stat.UF_HIDDEN)


# ---- process table ------------------------------------------------------

_missing_probe_reported = False


def is_process_running(name: str) -> bool:
    """
    Return True if a process called *name* is currently running.

    - Windows : ``tasklist`` filtered by image name (``<name>.exe``)
    - Others  : ``pgrep -x`` for both ``<name>`` and ``<name>.exe``
      (the latter covers Proton / Wine)
    """
    global _missing_probe_reported

    image = name if name.lower().endswith(".exe") else f"{name}.exe"
    try:
        if IS_WINDOWS:
            result = subprocess.run(
                ["tasklist", "/FI", f"IMAGENAME eq {image}", "/NH", "/FO", "CSV"],
                capture_output=True,
                text=True,
                check=False,
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
            )
            return f'"{image.lower()}"' in result.stdout.lower()

        stem = image[:-4]
        for candidate in (stem, image):
            result = subprocess.run(
                ["pgrep", "-x", candidate],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
            if result.returncode == 0:
                return True
        return False
    except FileNotFoundError:
        if not _missing_probe_reported:
            logger.warning(
                "Process probe tool not found; assuming %s is not running.", name
            )
            _missing_probe_reported = True
        return False
