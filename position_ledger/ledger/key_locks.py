"""In-process exclusive access per ledger key."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from position_ledger.domain import LedgerKey, LedgerLockTimeoutError


@dataclass
class _KeyLockEntry:
    """Lock plus the number of callers currently holding or waiting for it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class LedgerKeyLockRegistry:
    """Serialize read-modify-write work per ledger key inside one process.

    Entries are created on first use and evicted once no caller holds or waits
    on them, so the registry does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._entries: dict[LedgerKey, _KeyLockEntry] = {}

    @contextmanager
    def ledger_key_lock(self, key: LedgerKey, timeout_seconds: float) -> Iterator[None]:
        """Hold the exclusive lock for one key for the duration of the block.

        Args:
            key: Ledger key to serialize on.
            timeout_seconds: Maximum wait before giving up.

        Yields:
            None: Control returns to the caller while the lock is held.

        Raises:
            ValueError: Raised when timeout is not positive.
            LedgerLockTimeoutError: Raised when the lock is not acquired in time.
        """

        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        with self._registry_lock:
            entry = self._entries.setdefault(key, _KeyLockEntry())
            entry.users += 1

        acquired = entry.lock.acquire(timeout=timeout_seconds)
        try:
            if not acquired:
                raise LedgerLockTimeoutError(
                    f"timed out after {timeout_seconds}s waiting for ledger lock {key.describe()}"
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    self._entries.pop(key, None)

    def ledger_active_key_count(self) -> int:
        """Return the number of keys currently held or awaited."""

        with self._registry_lock:
            return len(self._entries)


__all__ = ["LedgerKeyLockRegistry"]
