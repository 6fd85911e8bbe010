"""
In-process keyed locks.

The ledger serialises work per scooter (``scooter:<id>``) and per ride
(``ride:<id>``).  Each key maps to its own ``threading.Lock`` so unrelated
scooters and rides never wait on each other.  Entries are reference
counted and dropped once no thread holds or waits on them.

Acquisition is bounded by a timeout; a lock that cannot be taken in time
raises ``LockTimeout`` instead of blocking forever.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


class LockTimeout(RuntimeError):
    pass


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class LockRegistry:
    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout = timeout_seconds
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def lock(self, key: str) -> KeyedLock:
        return KeyedLock(self, key)

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.setdefault(key, _Entry())
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]


class KeyedLock:
    def __init__(self, registry: LockRegistry, key: str):
        self.registry = registry
        self.key = f"lock:{key}"
        self._entry: _Entry | None = None
        self._held = False

    def acquire(self) -> bool:
        """Try to acquire within the registry timeout. Returns True on success."""
        self._entry = self.registry._checkout(self.key)
        self._held = self._entry.lock.acquire(timeout=self.registry.timeout)
        if not self._held:
            self.registry._checkin(self.key, self._entry)
            self._entry = None
        return self._held

    def release(self) -> None:
        if not self._held or self._entry is None:
            return
        self._entry.lock.release()
        self.registry._checkin(self.key, self._entry)
        self._entry = None
        self._held = False

    # context-manager support
    def __enter__(self):
        if not self.acquire():
            raise LockTimeout(f"Could not acquire lock: {self.key}")
        return self

    def __exit__(self, *args):
        self.release()
