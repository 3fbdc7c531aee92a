"""Bounded in-memory backup history per code unit."""

import logging
import threading

from .exceptions import BackupError

DEFAULT_MAX_BACKUPS = 10


class BackupStore:
    """Per-unit stack of prior source snapshots, oldest first.

    The store never holds more than ``max_backups`` entries for one unit;
    pushing onto a full stack evicts the oldest snapshot.
    """

    def __init__(self, max_backups: int = DEFAULT_MAX_BACKUPS) -> None:
        """Initialize the store.

        Raises:
            BackupError: If ``max_backups`` is less than 1.
        """
        if max_backups < 1:
            raise BackupError(f"max_backups must be >= 1, got {max_backups}")
        self.max_backups = max_backups
        self._stacks: dict[str, list[str]] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def push(self, unit_id: str, source: str) -> int:
        """Record ``source`` as the newest snapshot and return the new depth."""
        with self._lock:
            stack = self._stacks.setdefault(unit_id, [])
            stack.append(source)
            evicted = len(stack) - self.max_backups
            if evicted > 0:
                del stack[:evicted]
                self.logger.debug(f"Evicted {evicted} old backup(s) for {unit_id}")
            return len(stack)

    def pop(self, unit_id: str) -> str | None:
        """Remove and return the newest snapshot, or None when there is none."""
        with self._lock:
            stack = self._stacks.get(unit_id)
            if not stack:
                return None
            source = stack.pop()
            if not stack:
                del self._stacks[unit_id]
            return source

    def peek(self, unit_id: str) -> str | None:
        """Return the newest snapshot without removing it."""
        with self._lock:
            stack = self._stacks.get(unit_id)
            return stack[-1] if stack else None

    def depth(self, unit_id: str) -> int:
        """Number of snapshots held for ``unit_id``."""
        with self._lock:
            return len(self._stacks.get(unit_id, ()))

    def snapshots(self, unit_id: str) -> tuple[str, ...]:
        """Copy of all snapshots for ``unit_id``, oldest first."""
        with self._lock:
            return tuple(self._stacks.get(unit_id, ()))

    def resize(self, max_backups: int) -> None:
        """Change the bound, trimming existing stacks to the newest entries."""
        if max_backups < 1:
            raise BackupError(f"max_backups must be >= 1, got {max_backups}")
        with self._lock:
            self.max_backups = max_backups
            for stack in self._stacks.values():
                if len(stack) > max_backups:
                    del stack[: len(stack) - max_backups]

    def clear(self, unit_id: str | None = None) -> None:
        """Drop snapshots for one unit, or for every unit when ``unit_id`` is None."""
        with self._lock:
            if unit_id is None:
                self._stacks.clear()
            else:
                self._stacks.pop(unit_id, None)
