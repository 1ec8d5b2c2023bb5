"""Thread-safe operational counters for the file consumer."""

import threading
import time
from datetime import datetime, timezone


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def set(self, name: str, value: int) -> None:
        with self._lock:
            self._counters[name] = value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict:
        with self._lock:
            counters = dict(self._counters)
        return {
            "counters": counters,
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
