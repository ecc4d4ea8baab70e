"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event to
``<log_dir>/logs/events.ndjson``.  Writes use ``json.dumps(sort_keys=True)``
for deterministic output.

Concurrency safety:

- Each append acquires an exclusive ``fcntl.flock`` on the target file.
- Reads acquire a shared lock.
- On platforms without ``fcntl`` (Windows), the same descriptor I/O runs
  unlocked.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from fincalc.logging.events import CalcEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, log_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(log_dir) / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.logs_dir / "events.ndjson"

    def write(self, event: CalcEvent) -> None:
        """Append *event* to the log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        self._append(self.path, line)

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events, most-recent-first, with optional filters.

        Uses tail-style reading to bound memory usage on large log files.
        """
        limit = min(limit, 2000)
        events = self._read_ndjson(self.path)
        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        events.reverse()
        return events[:limit]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append a single line to *path* under exclusive file lock."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with _locked(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, exclusive=True) as fd:
            os.write(fd, line.encode("utf-8"))
            if self._fsync:
                os.fsync(fd)

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        """Read an NDJSON file, skipping lines that are not valid JSON."""
        if not path.exists():
            return []

        events: list[dict[str, Any]] = []
        for line in self._read_tail(path).splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _read_tail(self, path: Path) -> str:
        """Last ``tail_bytes`` of *path*, starting at a line boundary."""
        with _locked(path, os.O_RDONLY, exclusive=False) as fd:
            size = os.fstat(fd).st_size
            start = max(size - self._tail_bytes, 0)
            os.lseek(fd, start, os.SEEK_SET)
            data = os.read(fd, size - start)
        if start:
            # A cut mid-file lands inside a line; resume after its newline.
            data = data[data.find(b"\n") + 1:]
        return data.decode("utf-8", errors="replace")


@contextmanager
def _locked(path: Path, flags: int, *, exclusive: bool) -> Iterator[int]:
    """Open *path* as a raw descriptor, holding an ``flock`` while inside."""
    fd = os.open(str(path), flags | getattr(os, "O_BINARY", 0), 0o644)
    try:
        if _HAS_FCNTL:
            fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        yield fd
    finally:
        if _HAS_FCNTL:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
