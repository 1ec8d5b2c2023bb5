"""Checkpoint stores: persist file identity -> offset so restarts resume in place.

State is persisted as a JSON file with atomic writes (tmp + os.replace).
"""

import json
import logging
import os
import tempfile
import threading

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Interface: load once at startup, save after every poll cycle."""

    def load(self) -> dict[str, int]:
        raise NotImplementedError

    def save(self, offsets: dict[str, int]) -> None:
        raise NotImplementedError


class MemoryCheckpointStore(CheckpointStore):
    def __init__(self, offsets: dict[str, int] | None = None):
        self._lock = threading.Lock()
        self._offsets = dict(offsets or {})
        self.saves = 0

    def load(self) -> dict[str, int]:
        with self._lock:
            return dict(self._offsets)

    def save(self, offsets: dict[str, int]) -> None:
        with self._lock:
            self._offsets = dict(offsets)
            self.saves += 1


class JsonCheckpointStore(CheckpointStore):
    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> dict[str, int]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load checkpoints %s: %s", self._path, e)
            return {}
        offsets = {}
        for key, offset in data.get("offsets", {}).items():
            try:
                bytes.fromhex(key)
                offsets[key] = int(offset)
            except (TypeError, ValueError):
                logger.warning("Skipping malformed checkpoint entry %r in %s", key, self._path)
        logger.info("Loaded %d checkpoint(s) from %s", len(offsets), self._path)
        return offsets

    def save(self, offsets: dict[str, int]) -> None:
        directory = os.path.dirname(self._path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"offsets": offsets}, f)
            os.replace(tmp, self._path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
