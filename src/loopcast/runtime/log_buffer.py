"""
Bounded log buffer for relay output.

Holds the most recent lines a relay process wrote plus orchestrator lifecycle
events. When full, the oldest entry is evicted (FIFO).
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable

from ..shared.schemas import LogEntry

DEFAULT_LOG_CAPACITY = 100


class LogBuffer:
    """
    Thread-safe ring buffer of timestamped log entries.

    - Written by the process watcher thread and by the orchestrator.
    - Read by status/log queries; :meth:`snapshot` returns a copy, so readers
      never observe a half-applied append.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_LOG_CAPACITY,
        now_fn: Callable[[], datetime] | None = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def append(self, message: str) -> None:
        """Append one entry; blank messages are dropped."""
        text = message.strip()
        if not text:
            return
        entry = LogEntry(timestamp=self._now_fn(), message=text)
        with self._lock:
            self._entries.append(entry)

    def snapshot(self, limit: int | None = None) -> list[LogEntry]:
        """Entries oldest first; ``limit`` keeps only the most recent ones."""
        with self._lock:
            data = list(self._entries)
        return data[-limit:] if limit else data

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
