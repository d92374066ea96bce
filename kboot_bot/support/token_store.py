# kboot_bot/support/token_store.py
"""
Single-owner, in-memory holder of the current kabuStation session token.

- One value guarded by a reader/writer lock: many concurrent readers, exclusive writers,
  readers blocked while a write is in progress and vice versa.
- get() on an unset store returns "" which callers treat as "not authenticated".
- The value is stored verbatim. It is never logged and never written to disk.
- No explicit invalidation: a token lives until overwritten or the process exits.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager


class ReadWriteLock:
    """
    threading.Condition based RW lock with writer preference
    (a waiting writer blocks new readers so writes cannot starve).
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer_active or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read called with no active readers")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer_active or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer_active = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer_active:
                raise RuntimeError("release_write called without an active writer")
            self._writer_active = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class TokenStore:
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._token = ""

    def set(self, token: str) -> None:
        if not isinstance(token, str):
            raise TypeError("token must be a str")
        with self._lock.write_locked():
            self._token = token

    def get(self) -> str:
        with self._lock.read_locked():
            return self._token

    def is_authenticated(self) -> bool:
        return self.get() != ""

    def __repr__(self) -> str:
        # Never expose the value
        return f"<TokenStore authenticated={self.is_authenticated()}>"


__all__ = ["ReadWriteLock", "TokenStore"]
