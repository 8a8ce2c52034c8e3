"""Kernel log — the audit trail of what the resource manager did.

Every conformance run boots a fresh kernel, and the kernel records what
it did on behalf of the harness: processes created, reaped, refused for
lack of capacity, descriptors exhausted, programs that crashed.  When a
harness fails, the log is the first place to look.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source, pid).
- **Logger** — an append-only, thread-safe log with filtering and clearing.

Expected-failure signals (a full process table, an exhausted fd table)
are logged at DEBUG.  They are flow control for the harness, not errors.
"""

from dataclasses import dataclass
from enum import IntEnum
from threading import Lock


class LogLevel(IntEnum):
    """Severity levels for log entries.

    Using IntEnum means levels compare with ``<`` / ``>`` naturally,
    which makes minimum-level filtering trivial.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "kernel").
        pid: The process the event concerns (0 = the kernel itself).

    """

    level: LogLevel
    message: str
    source: str
    pid: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source(pid): message``."""
        return f"[{self.level.name}] {self.source}({self.pid}): {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    Processes run on their own threads, so appends and snapshots are
    serialised by a lock.
    """

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []
        self._lock = Lock()

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int = 0,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            pid: Process associated with the event.

        """
        entry = LogEntry(level=level, message=message, source=source, pid=pid)
        with self._lock:
            self._entries.append(entry)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            pid: If set, only return entries about this process.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if pid is not None:
            result = [e for e in result if e.pid == pid]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        with self._lock:
            self._entries.clear()
