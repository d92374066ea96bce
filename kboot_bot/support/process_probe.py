# kboot_bot/support/process_probe.py
"""
Process-table queries for boot orchestration.

ProcessProbe is the interface; one implementation per target OS:
  - TasklistProbe: Windows `tasklist.exe /FO CSV /NH /FI ...`, filtered by image name or PID
    so the full table is never transferred.
  - PsutilProbe:   psutil process table (Linux/macOS, and tests).

Contract:
  is_running(image_name) -> bool          raises ProbeError if the query failed
  find_pids(image_name)  -> list[int]     [] when the query ran but matched nothing
  is_alive(pid)          -> bool          any error means "not alive"

Image-name matching is case-insensitive. Zombies count as not alive.
"""

from __future__ import annotations

import csv
import os
import subprocess
from typing import List, Optional

import psutil

from kboot_bot.config.error_handler_bot import ProbeError
from kboot_bot.support.utils_log import log_event

TASKLIST_EXE = "tasklist.exe"
TASKLIST_TIMEOUT_SEC = 15


class ProcessProbe:
    """Interface; subclasses implement find_pids and is_alive."""

    name = "base"

    def find_pids(self, image_name: str) -> List[int]:
        raise NotImplementedError

    def is_alive(self, pid: int) -> bool:
        raise NotImplementedError

    def is_running(self, image_name: str) -> bool:
        return len(self.find_pids(image_name)) > 0


def parse_tasklist_csv(output: str) -> List[tuple]:
    """
    Parse `tasklist /FO CSV /NH` output into [(image_name, pid), ...].
    Lines not starting with a quote are informational (e.g. the localized
    "INFO: No tasks are running..." message) and are skipped.
    Raises ProbeError on rows that look like data but cannot be parsed.
    """
    rows = []
    data_lines = [ln for ln in (output or "").splitlines() if ln.strip().startswith('"')]
    for row in csv.reader(data_lines):
        if len(row) < 2:
            raise ProbeError("Unparseable tasklist output", detail=",".join(row))
        try:
            pid = int(row[1].strip())
        except ValueError as e:
            raise ProbeError("Unparseable tasklist output", detail=",".join(row)) from e
        rows.append((row[0].strip(), pid))
    return rows


class TasklistProbe(ProcessProbe):
    name = "tasklist"

    def __init__(self, executable: str = TASKLIST_EXE, timeout: float = TASKLIST_TIMEOUT_SEC):
        self.executable = executable
        self.timeout = timeout

    def _query(self, filter_expr: str) -> List[tuple]:
        argv = [self.executable, "/FO", "CSV", "/NH", "/FI", filter_expr]
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ProbeError("Failed to run tasklist", detail=str(e)) from e
        if proc.returncode != 0:
            raise ProbeError(
                f"tasklist exited with code {proc.returncode}",
                detail=((proc.stdout or "") + (proc.stderr or "")).strip(),
            )
        return parse_tasklist_csv(proc.stdout)

    def find_pids(self, image_name: str) -> List[int]:
        if not (image_name or "").strip():
            raise ProbeError("Image name is empty")
        wanted = image_name.strip().lower()
        rows = self._query(f"IMAGENAME eq {image_name.strip()}")
        return [pid for name, pid in rows if name.lower() == wanted]

    def is_alive(self, pid: int) -> bool:
        try:
            rows = self._query(f"PID eq {int(pid)}")
        except (ProbeError, ValueError, TypeError) as e:
            log_event("process_probe", f"is_alive({pid}) probe failed; treating as not alive: {e}", level="debug")
            return False
        return any(row_pid == int(pid) for _, row_pid in rows)


class PsutilProbe(ProcessProbe):
    name = "psutil"

    def find_pids(self, image_name: str) -> List[int]:
        if not (image_name or "").strip():
            raise ProbeError("Image name is empty")
        wanted = image_name.strip().lower()
        pids = []
        try:
            for proc in psutil.process_iter(["pid", "name", "status"]):
                info = proc.info
                if (info.get("name") or "").lower() != wanted:
                    continue
                if info.get("status") == psutil.STATUS_ZOMBIE:
                    continue
                pids.append(info["pid"])
        except psutil.Error as e:
            raise ProbeError("Failed to enumerate processes", detail=str(e)) from e
        return sorted(pids)

    def is_alive(self, pid: int) -> bool:
        try:
            proc = psutil.Process(int(pid))
            return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
        except (psutil.Error, ValueError, TypeError):
            return False


def get_probe(kind: Optional[str] = "auto") -> ProcessProbe:
    """
    Select the probe for this OS ("auto") or force one ("tasklist" / "psutil").
    """
    kind = (kind or "auto").strip().lower()
    if kind == "tasklist":
        return TasklistProbe()
    if kind == "psutil":
        return PsutilProbe()
    if kind != "auto":
        raise ValueError(f"[process_probe] Unknown probe kind: {kind}")
    return TasklistProbe() if os.name == "nt" else PsutilProbe()


__all__ = [
    "ProcessProbe",
    "TasklistProbe",
    "PsutilProbe",
    "parse_tasklist_csv",
    "get_probe",
]
