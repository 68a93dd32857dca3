"""Tests for release packaging."""

from __future__ import annotations

import zipfile
from datetime import datetime
from pathlib import Path

import pytest

from kcd_autopacker.release import ReleaseBuilder, has_unpacked_folder

from conftest import FakeGame, archive_names, write_file

NOW = datetime(2024, 5, 1, 12, 0, 10)
STAMP = "20240501-120010"


@pytest.fixture
def release_root(tmp_path: Path) -> Path:
    return tmp_path / "Mods-Dev" / "Release"


def _builder(mods_dir: Path, release_root: Path, game=None, **kwargs) -> ReleaseBuilder:
    return ReleaseBuilder(
        mods_dir, release_root, game or FakeGame(), clock=lambda: NOW, **kwargs
    )


def _make_mod(mods_dir: Path, name: str) -> Path:
    mod = mods_dir / name
    write_file(mod / "mod.manifest", f"<mod name='{name}'/>")
    write_file(mod / "Data" / f"{name}.pak", b"PK-data")
    write_file(mod / "Data" / f"{name}.unpacked" / "weapon.xml", "<w/>")
    return mod


def test_release_contains_packaged_output_only(mods_dir, release_root):
    mod = _make_mod(mods_dir, "MyMod")
    write_file(mod / "notes.tmp", "junk")
    write_file(mod / ".git-keep", "junk")
    write_file(mod / "Data" / "table.xml.original", "<old/>")

    summary = _builder(mods_dir, release_root).publish_all()

    artifact = release_root / "MyMod" / f"MyMod-{STAMP}.zip"
    assert summary is not None
    assert (summary.found, summary.published, summary.failed) == (1, 1, 0)
    assert summary.artifacts == [artifact]
    assert archive_names(artifact) == {"MyMod/mod.manifest", "MyMod/Data/MyMod.pak"}


def test_pack_original_includes_backups(mods_dir, release_root):
    mod = _make_mod(mods_dir, "MyMod")
    write_file(mod / "Data" / "table.xml.original", "<old/>")

    _builder(mods_dir, release_root, pack_original_files=True).publish_all()

    names = archive_names(release_root / "MyMod" / f"MyMod-{STAMP}.zip")
    assert "MyMod/Data/table.xml.original" in names


def test_mod_without_unpacked_folder_is_not_counted(mods_dir, release_root):
    _make_mod(mods_dir, "Active")
    write_file(mods_dir / "Finished" / "mod.manifest", "<mod/>")

    summary = _builder(mods_dir, release_root).publish_all()

    assert summary is not None
    assert (summary.found, summary.published, summary.failed) == (1, 1, 0)
    assert not (release_root / "Finished").exists()


def test_mod_with_only_working_files_is_skipped(mods_dir, release_root):
    write_file(mods_dir / "Draft" / "Data" / "Draft.unpacked" / "a.xml", "<a/>")

    summary = _builder(mods_dir, release_root).publish_all()

    assert summary is not None
    assert (summary.found, summary.published, summary.empty) == (1, 0, 1)
    assert list((release_root / "Draft").iterdir()) == []


def test_new_release_never_replaces_old_one(mods_dir, release_root):
    _make_mod(mods_dir, "MyMod")
    earlier = datetime(2024, 4, 1, 9, 30, 0)
    ReleaseBuilder(mods_dir, release_root, FakeGame(), clock=lambda: earlier).publish_all()

    _builder(mods_dir, release_root).publish_all()

    assert sorted(p.name for p in (release_root / "MyMod").iterdir()) == [
        "MyMod-20240401-093000.zip",
        f"MyMod-{STAMP}.zip",
    ]


def test_existing_artifact_fails_that_mod_only(mods_dir, release_root):
    _make_mod(mods_dir, "Alpha")
    _make_mod(mods_dir, "Beta")
    clash = write_file(release_root / "Alpha" / f"Alpha-{STAMP}.zip", b"older release")

    summary = _builder(mods_dir, release_root).publish_all()

    assert summary is not None
    assert (summary.found, summary.published, summary.failed) == (2, 1, 1)
    assert clash.read_bytes() == b"older release"
    assert (release_root / "Beta" / f"Beta-{STAMP}.zip").is_file()


def test_partial_archive_is_deleted_on_failure(mods_dir, release_root, monkeypatch):
    _make_mod(mods_dir, "Alpha")
    original_write = zipfile.ZipFile.write

    def failing_write(self, filename, arcname=None, *args, **kwargs):
        if str(arcname).endswith(".pak"):
            raise OSError("read error")
        return original_write(self, filename, arcname, *args, **kwargs)

    monkeypatch.setattr(zipfile.ZipFile, "write", failing_write)

    summary = _builder(mods_dir, release_root).publish_all()

    assert summary is not None
    assert (summary.found, summary.published, summary.failed) == (1, 0, 1)
    assert list((release_root / "Alpha").iterdir()) == []


class TestPreconditions:
    def test_refuses_outside_mods_folder(self, tmp_path, release_root):
        other = tmp_path / "Workbench"
        _make_mod(other, "MyMod")

        assert _builder(other, release_root).publish_all() is None
        assert not release_root.exists()

    def test_any_folder_bypasses_name_check(self, tmp_path, release_root):
        other = tmp_path / "Workbench"
        _make_mod(other, "MyMod")

        summary = _builder(other, release_root, any_folder=True).publish_all()

        assert summary is not None
        assert summary.published == 1

    def test_root_name_check_is_case_insensitive(self, tmp_path, release_root):
        root = tmp_path / "mods"
        _make_mod(root, "MyMod")

        assert _builder(root, release_root).publish_all() is not None

    def test_refuses_while_game_running(self, mods_dir, release_root, caplog):
        _make_mod(mods_dir, "MyMod")

        result = _builder(mods_dir, release_root, FakeGame(running=True)).publish_all()

        assert result is None
        assert not release_root.exists()
        assert "Game is running" in caplog.text


def test_has_unpacked_folder(mods_dir):
    mod = _make_mod(mods_dir, "MyMod")
    plain = mods_dir / "Plain"
    plain.mkdir()

    assert has_unpacked_folder(mod)
    assert not has_unpacked_folder(plain)


def test_unexpected_error_fails_only_that_mod(mods_dir, release_root, monkeypatch):
    _make_mod(mods_dir, "Alpha")
    _make_mod(mods_dir, "Beta")
    original_build = ReleaseBuilder._build_mod_archive

    def build(self, mod_dir, zip_path):
        if mod_dir.name == "Alpha":
            raise NotImplementedError("That compression method is not supported")
        return original_build(self, mod_dir, zip_path)

    monkeypatch.setattr(ReleaseBuilder, "_build_mod_archive", build)

    summary = _builder(mods_dir, release_root).publish_all()

    assert summary is not None
    assert (summary.found, summary.published, summary.failed) == (2, 1, 1)
    assert (release_root / "Beta" / f"Beta-{STAMP}.zip").is_file()


def test_unexpected_batch_error_is_reported_not_raised(mods_dir, release_root, caplog):
    _make_mod(mods_dir, "Alpha")

    def broken_clock():
        raise RuntimeError("clock unavailable")

    builder = ReleaseBuilder(mods_dir, release_root, FakeGame(), clock=broken_clock)

    assert builder.publish_all() is None
    assert "clock unavailable" in caplog.text
