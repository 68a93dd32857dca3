"""Shared fixtures for KCD AutoPacker tests."""

from __future__ import annotations

import logging
import os
import time
import zipfile
from pathlib import Path

import pytest

# A fixed local time with an even second count, so zip entries store it exactly.
ENTRY_DATE_TIME = (2024, 5, 1, 12, 0, 10)
ENTRY_TIME = time.mktime(ENTRY_DATE_TIME + (0, 0, -1))


class FakeGame:
    """Lock monitor whose answer the test controls."""

    def __init__(self, running: bool = False) -> None:
        self.running = running
        self.calls = 0

    def is_running(self) -> bool:
        self.calls += 1
        return self.running


def write_file(path: Path, data: bytes | str, mtime: float | None = None) -> Path:
    """Create *path* (and its parents) with *data*, optionally setting its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.write_bytes(data)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def make_archive(
    path: Path,
    entries: dict[str, bytes],
    date_time: tuple[int, int, int, int, int, int] = ENTRY_DATE_TIME,
) -> Path:
    """Write a zip at *path* whose entries all carry *date_time*."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(zipfile.ZipInfo(name, date_time=date_time), data)
    return path


def archive_names(path: Path) -> set[str]:
    with zipfile.ZipFile(path) as zf:
        return set(zf.namelist())


@pytest.fixture
def fake_game() -> FakeGame:
    return FakeGame()


@pytest.fixture
def mods_dir(tmp_path: Path) -> Path:
    mods = tmp_path / "Mods"
    mods.mkdir()
    return mods


@pytest.fixture
def unit(mods_dir: Path) -> Path:
    """An empty ``MyMod/Data/MyMod.unpacked`` folder inside the Mods folder."""
    path = mods_dir / "MyMod" / "Data" / "MyMod.unpacked"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def restore_root_logger():
    """Remove any handlers a test adds to the root logger."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
