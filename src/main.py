"""
Process entry point: crash diagnostics, then one configured scan.
"""

import faulthandler
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path

from orchestrator.main import main


def _enable_crash_diagnostics(logs_dir: Path) -> None:
    """Send fatal-signal dumps and uncaught exceptions to a dated crash log."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    crash_log = logs_dir / f"organizer_crash_{datetime.utcnow().strftime('%Y%m%d')}.log"
    faulthandler.enable(file=crash_log.open("a", encoding="utf-8"), all_threads=True)

    def _hook(exc_type, exc, tb) -> None:
        with crash_log.open("a", encoding="utf-8") as handle:
            handle.write(f"\n{datetime.utcnow().isoformat()} Unhandled exception\n")
            traceback.print_exception(exc_type, exc, tb, file=handle)
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _hook
    threading.excepthook = lambda args: _hook(args.exc_type, args.exc_value, args.exc_traceback)


if __name__ == "__main__":
    _enable_crash_diagnostics(Path("logs"))
    raise SystemExit(main())
