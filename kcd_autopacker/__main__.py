"""Entry point for KCD AutoPacker.

Usage:
    python -m kcd_autopacker [MODS_DIR] [options]   Watch and sync interactively
    python -m kcd_autopacker MODS_DIR --release      Build a release and exit
    python -m kcd_autopacker MODS_DIR --save         Remember MODS_DIR for the service
    python -m kcd_autopacker service start           Run headless (see service.py)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from kcd_autopacker import __app_name__, __version__
from kcd_autopacker.config import Config


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="kcd-autopacker",
        description=f"{__app_name__}: keeps *.unpacked mod folders in sync with their archives.",
    )
    parser.add_argument(
        "working_directory",
        nargs="?",
        help="Mods folder to watch (default: configured folder, else current directory)",
    )
    parser.add_argument("--release-dir", help="folder that receives release zips")
    parser.add_argument(
        "--release",
        action="store_true",
        help="build a release for every mod and exit",
    )
    parser.add_argument(
        "--any-folder",
        action="store_true",
        help="allow a working directory outside the Mods folder",
    )
    parser.add_argument(
        "--print-error-stack",
        action="store_true",
        help="log full tracebacks instead of one-line errors",
    )
    parser.add_argument(
        "--pack-original",
        action="store_true",
        help="pack *.original backup files too",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="remember the given working and release folders (used by 'service start')",
    )
    parser.add_argument("--config", help="path to an alternative config.json")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def save_folders(cfg: Config, args: argparse.Namespace) -> None:
    """Store the folders given on the command line in the config file."""
    if args.working_directory:
        cfg.working_directory = str(Path(args.working_directory).expanduser().resolve())
    if args.release_dir:
        cfg.release_directory = str(Path(args.release_dir).expanduser().resolve())
    cfg.save()


def apply_overrides(cfg: Config, args: argparse.Namespace) -> None:
    """Apply command-line flags to *cfg* for this run (not saved)."""
    if args.any_folder:
        cfg.any_folder = True
    if args.print_error_stack:
        cfg.print_error_stack = True
    if args.pack_original:
        cfg.pack_original_files = True
    if args.log_level:
        cfg.log_level = args.log_level


def main(argv: list[str] | None = None) -> None:
    """Launch the console app or delegate to the service CLI."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and argv[0] in ("--service", "service"):
        from kcd_autopacker.service import main as service_main

        service_main(argv[1:])
        return

    args = build_parser().parse_args(argv)
    cfg = Config(Path(args.config) if args.config else None)
    # Saved before the per-run flags are applied
    if args.save:
        save_folders(cfg, args)
    apply_overrides(cfg, args)

    from kcd_autopacker.app import App

    app = App(cfg, args.working_directory, args.release_dir)
    code = app.release_once() if args.release else app.run()
    sys.exit(code)


if __name__ == "__main__":
    main()
