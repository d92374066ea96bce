# kboot_bot/support/pid_registry.py
# Last-known PID per boot target ("kabus", "tradeapp"), last writer wins.
# In-memory only; a new boot of the same target overwrites the previous entry.

from __future__ import annotations

import threading
from typing import Dict, Optional

from kboot_bot.support.utils_time import fmt_iso_utc, now_utc

TARGETS = ("kabus", "tradeapp")


class PidRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pids: Dict[str, Optional[int]] = {t: None for t in TARGETS}
        self._updated: Dict[str, Optional[str]] = {t: None for t in TARGETS}

    def record(self, target: str, pid: int) -> None:
        if target not in TARGETS:
            raise ValueError(f"[pid_registry] Unknown target: {target}")
        with self._lock:
            self._pids[target] = int(pid)
            self._updated[target] = fmt_iso_utc(now_utc())

    def get(self, target: str) -> Optional[int]:
        with self._lock:
            return self._pids.get(target)

    def snapshot(self) -> Dict[str, dict]:
        with self._lock:
            return {t: {"pid": self._pids[t], "updated_at": self._updated[t]} for t in TARGETS}


__all__ = ["TARGETS", "PidRegistry"]
