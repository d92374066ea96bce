# kboot_bot/support/process_launcher.py
"""
Detached launching of external executables (kabuStation, TradeWebApp).

- launch() starts the process without waiting and releases ownership immediately:
  stdio goes to devnull, the child gets its own session / process group, and a daemon
  reaper thread collects the exit status so a crashed child never lingers as a zombie.
- Later liveness checks are fresh ProcessProbe queries, never this handle.
- Missing binary, permission problems or OS refusal raise LaunchError.
- No readiness polling here; settle waits belong to the orchestrator.
"""

from __future__ import annotations

import os
import subprocess
import threading
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from kboot_bot.config.error_handler_bot import LaunchError
from kboot_bot.support.utils_log import log_event


@dataclass(frozen=True)
class ProcessHandle:
    pid: int
    image_name: str


def _detach_kwargs() -> dict:
    if os.name == "nt":
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        return {"creationflags": flags, "close_fds": True}
    return {"start_new_session": True, "close_fds": True}


def _reap(proc: subprocess.Popen) -> None:
    try:
        proc.wait()
    except OSError:
        pass


class ProcessLauncher:
    def launch(
        self,
        path: str,
        args: Optional[Sequence[str]] = None,
        working_dir: Optional[str] = None,
    ) -> ProcessHandle:
        """
        Start `path` with `args` in `working_dir` and return its handle (pid, image name).
        """
        if not (path or "").strip():
            raise LaunchError("Executable path is empty")
        argv: List[str] = [path] + [str(a) for a in (args or [])]
        cwd = working_dir or None
        if cwd and not Path(cwd).is_dir():
            raise LaunchError(f"Working directory does not exist: {cwd}")

        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **_detach_kwargs(),
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise LaunchError(f"Failed to launch {Path(path).name}", detail=str(e)) from e

        threading.Thread(target=_reap, args=(proc,), name=f"reap-{proc.pid}", daemon=True).start()

        handle = ProcessHandle(pid=proc.pid, image_name=Path(path).name)
        # argv may carry the session token: log the executable only
        log_event("process_launcher", f"Launched {handle.image_name}", extra={"pid": handle.pid, "cwd": cwd})
        return handle


class UrlOpener:
    """OS URL dispatcher (default browser) for the browser-only TradeWebApp variant."""

    def open(self, url: str) -> None:
        if not (url or "").strip():
            raise LaunchError("URL is empty")
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            raise LaunchError("Failed to open URL", detail=str(e)) from e
        if not opened:
            raise LaunchError("No browser available to open URL", detail=url)
        log_event("process_launcher", f"Opened URL {url}")


__all__ = ["ProcessHandle", "ProcessLauncher", "UrlOpener"]
