"""Tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from kcd_autopacker import __main__ as cli
from kcd_autopacker.config import Config


class RecordingApp:
    instances: list["RecordingApp"] = []

    def __init__(self, config, working_directory=None, release_directory=None):
        self.config = config
        self.working_directory = working_directory
        self.release_directory = release_directory
        self.called = ""
        RecordingApp.instances.append(self)

    def run(self) -> int:
        self.called = "run"
        return 0

    def release_once(self) -> int:
        self.called = "release"
        return 3


@pytest.fixture
def recording_app(monkeypatch):
    RecordingApp.instances = []
    monkeypatch.setattr("kcd_autopacker.app.App", RecordingApp)
    return RecordingApp


def test_parser_defaults():
    args = cli.build_parser().parse_args([])

    assert args.working_directory is None
    assert not args.release
    assert not args.any_folder
    assert args.release_dir is None


def test_overrides_apply_only_given_flags(tmp_path: Path):
    cfg = Config(tmp_path / "config.json")
    args = cli.build_parser().parse_args(
        ["--any-folder", "--pack-original", "--log-level", "debug"]
    )

    cli.apply_overrides(cfg, args)

    assert cfg.any_folder
    assert cfg.pack_original_files
    assert not cfg.print_error_stack
    assert cfg.log_level == "DEBUG"


def test_main_runs_interactive_app(tmp_path, recording_app):
    config = tmp_path / "config.json"

    with pytest.raises(SystemExit) as exc:
        cli.main(["C:/Games/KCD/Mods", "--config", str(config)])

    assert exc.value.code == 0
    app = recording_app.instances[0]
    assert app.called == "run"
    assert app.working_directory == "C:/Games/KCD/Mods"


def test_main_release_mode_returns_release_exit_code(tmp_path, recording_app):
    config = tmp_path / "config.json"

    with pytest.raises(SystemExit) as exc:
        cli.main(["--release", "--release-dir", "out", "--config", str(config)])

    assert exc.value.code == 3
    app = recording_app.instances[0]
    assert app.called == "release"
    assert app.release_directory == "out"


def test_main_delegates_service_commands(monkeypatch):
    received = []
    monkeypatch.setattr("kcd_autopacker.service.main", received.append)

    cli.main(["service", "start"])

    assert received == [["start"]]


def test_save_remembers_folders_but_not_run_flags(tmp_path, mods_dir, recording_app):
    config = tmp_path / "config.json"

    with pytest.raises(SystemExit):
        cli.main(
            [
                str(mods_dir),
                "--release-dir",
                str(tmp_path / "out"),
                "--save",
                "--any-folder",
                "--config",
                str(config),
            ]
        )

    stored = Config(config)
    assert stored.working_directory == str(mods_dir.resolve())
    assert stored.release_directory == str((tmp_path / "out").resolve())
    assert not stored.any_folder
    assert recording_app.instances[0].config.any_folder


def test_without_save_config_file_keeps_folders_empty(tmp_path, mods_dir, recording_app):
    config = tmp_path / "config.json"

    with pytest.raises(SystemExit):
        cli.main([str(mods_dir), "--config", str(config)])

    assert Config(config).working_directory == ""


def test_saved_folder_is_read_by_default_config(tmp_path, mods_dir, monkeypatch):
    config = tmp_path / "config.json"
    cfg = Config(config)
    args = cli.build_parser().parse_args([str(mods_dir), "--save"])

    cli.save_folders(cfg, args)

    monkeypatch.setattr("kcd_autopacker.config.get_config_path", lambda: config)
    assert Config().working_directory == str(mods_dir.resolve())
