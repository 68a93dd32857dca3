"""
Background service support for KCD AutoPacker.

Runs the watcher and sync worker headless (no console commands, no
releases) so archives stay current while the modding tools are open.

**Windows**: runs as a Windows service via pywin32:
    python -m kcd_autopacker service install
    python -m kcd_autopacker service start
    python -m kcd_autopacker service stop
    python -m kcd_autopacker service remove

**macOS / Linux**: runs as a headless foreground process:
    python -m kcd_autopacker service start     (blocks until Ctrl-C)

The Mods folder is taken from the ``working_directory`` config value.
"""

import logging
import signal
import sys
import threading
from typing import TYPE_CHECKING

from kcd_autopacker.platform_utils import IS_WINDOWS

if TYPE_CHECKING:
    from kcd_autopacker.app import App

logger = logging.getLogger(__name__)

# ---- Windows service (pywin32) -----------------------------------------

_HAS_WIN32 = False
if IS_WINDOWS:
    try:
        import servicemanager  # type: ignore[import-untyped]
        import win32event  # type: ignore[import-untyped]
        import win32service  # type: ignore[import-untyped]
        import win32serviceutil  # type: ignore[import-untyped]
        _HAS_WIN32 = True
    except ImportError:
        pass


def _run_sync_loop() -> "App":
    """
    Start the watcher and sync worker without the console loop.

    Returns the running App so the caller can stop it.
    """
    from kcd_autopacker.app import App
    from kcd_autopacker.config import Config, get_log_path

    # Set up file logging
    logging.basicConfig(
        filename=str(get_log_path()),
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    cfg = Config()
    if not cfg.working_directory:
        logger.error(
            "Service cannot start: working_directory is not configured. "
            "Run: kcd-autopacker MODS_DIR --save"
        )
        raise RuntimeError("KCD AutoPacker is not configured.")

    app = App(cfg)
    app.setup()
    app.start_sync()
    logger.info("Service syncing %s", app.working_root)
    return app


# ======================================================================
# Windows service
# ======================================================================

if _HAS_WIN32:

    class AutoPackerService(win32serviceutil.ServiceFramework):
        """Windows service implementation for KCD AutoPacker."""

        _svc_name_ = "KCDAutoPacker"
        _svc_display_name_ = "KCD AutoPacker"
        _svc_description_ = (
            "Keeps Kingdom Come *.unpacked mod folders in sync with their "
            ".pak archives whenever the game is not running."
        )

        def __init__(self, args):
            super().__init__(args)
            self._stop_event = win32event.CreateEvent(None, 0, 0, None)
            self._app = None

        def SvcStop(self):
            self.ReportServiceStatus(win32service.SERVICE_STOP_PENDING)
            win32event.SetEvent(self._stop_event)
            logger.info("Service stop requested.")

        def SvcDoRun(self):
            servicemanager.LogMsg(
                servicemanager.EVENTLOG_INFORMATION_TYPE,
                servicemanager.PYS_SERVICE_STARTED,
                (self._svc_name_, ""),
            )
            try:
                self._app = _run_sync_loop()
                win32event.WaitForSingleObject(self._stop_event, win32event.INFINITE)
            except Exception as exc:
                logger.exception("Service error: %s", exc)
                servicemanager.LogErrorMsg(f"KCD AutoPacker error: {exc}")
            finally:
                if self._app:
                    self._app.stop_sync()
            logger.info("Service stopped.")


# ======================================================================
# Cross-platform headless runner
# ======================================================================

def _run_foreground() -> None:
    """Run the sync engine in the foreground until SIGINT/SIGTERM."""
    app = _run_sync_loop()
    stop = threading.Event()

    def _handler(sig, frame):
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print("KCD AutoPacker running (press Ctrl-C to stop)…")
    while not stop.wait(1):
        pass
    app.stop_sync()
    print("KCD AutoPacker stopped.")


# ======================================================================
# CLI entry
# ======================================================================

def main(argv: list[str] | None = None) -> None:
    """Entry point for service/daemon control."""
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else ""

    if IS_WINDOWS and cmd != "run":
        if not _HAS_WIN32:
            print("ERROR: pywin32 is required for service mode on Windows.")
            print("       pip install pywin32")
            sys.exit(1)
        if cmd == "":
            try:
                servicemanager.Initialize()
                servicemanager.PrepareToHostSingle(AutoPackerService)
                servicemanager.StartServiceCtrlDispatcher()
            except Exception:
                _show_help()
        else:
            win32serviceutil.HandleCommandLine(
                AutoPackerService, argv=[sys.argv[0], *argv]
            )
        return

    if cmd in ("start", "run"):
        _run_foreground()
    else:
        _show_help()


def _show_help() -> None:
    print("KCD AutoPacker: Background Service")
    print()
    print("Usage:")
    if IS_WINDOWS:
        print("  python -m kcd_autopacker service install   Install the Windows service")
        print("  python -m kcd_autopacker service start     Start the service")
        print("  python -m kcd_autopacker service stop      Stop the service")
        print("  python -m kcd_autopacker service remove    Uninstall the service")
        print("  python -m kcd_autopacker service run       Run in the foreground")
    else:
        print("  python -m kcd_autopacker service start     Run in foreground (Ctrl-C to stop)")


if __name__ == "__main__":
    main()
