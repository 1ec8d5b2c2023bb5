"""Emit targets for completed records. Every sink accepts concurrent calls."""

import json
import sys
import threading

from filelog.models import FileAttributes, LogEntry


class JsonLinesSink:
    """Writes one JSON object per record; a lock keeps lines from interleaving."""

    def __init__(self, path: str | None = None, stream=None):
        self._lock = threading.Lock()
        self._owns_stream = stream is None and path is not None
        if self._owns_stream:
            self._stream = open(path, "a", encoding="utf-8")
        else:
            self._stream = stream or sys.stdout
        self._written = 0

    @property
    def written(self) -> int:
        return self._written

    def __call__(self, attributes: FileAttributes, record: str) -> None:
        line = json.dumps(LogEntry(record, attributes).to_dict(), ensure_ascii=False)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()
            self._written += 1

    def close(self) -> None:
        with self._lock:
            if self._owns_stream and not self._stream.closed:
                self._stream.close()


class CollectingSink:
    """Keeps emitted entries in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[LogEntry] = []

    def __call__(self, attributes: FileAttributes, record: str) -> None:
        with self._lock:
            self._entries.append(LogEntry(record, attributes))

    @property
    def entries(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def bodies(self) -> list[str]:
        with self._lock:
            return [e.body for e in self._entries]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
