"""Reader: one bounded read pass over a tracked file.

A pass opens the file, seeks to the committed offset, feeds bytes through
the splitter, emits each completed record and closes the handle again. No
handle outlives a pass.
"""

import logging
import os
import threading
from dataclasses import dataclass

from filelog.metrics import Metrics
from filelog.models import FileAttributes, ReaderState
from filelog.splitter import Splitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadResult:
    offset: int
    emitted: int = 0
    error: OSError | None = None


class Reader:
    def __init__(
        self,
        state: ReaderState,
        splitter: Splitter,
        emit,
        max_log_size: int = 1024 * 1024,
        labels: dict | None = None,
        metrics: Metrics | None = None,
        opener=open,
    ):
        self.state = state
        self._splitter = splitter
        self._emit = emit
        self._chunk_size = max_log_size
        self._labels = dict(labels or {})
        self._metrics = metrics or Metrics()
        self._opener = opener

    @property
    def splitter(self) -> Splitter:
        return self._splitter

    def attributes(self) -> FileAttributes:
        return FileAttributes(
            path=self.state.path,
            name=os.path.basename(self.state.path),
            identity=self.state.identity.key,
            labels=dict(self._labels),
        )

    def read_pass(self, shutdown: threading.Event | None = None) -> ReadResult:
        """Read from the committed offset to the end of the file.

        OSError is reported in the result, never raised; the offset stays where
        the last emitted record ended so the next pass retries from there.
        """
        emitted = 0
        try:
            with self._opener(self.state.path, "rb") as f:
                size = os.fstat(f.fileno()).st_size
                if size < self.state.offset:
                    logger.info("File truncated (size %d < offset %d), reading from start: %s",
                                size, self.state.offset, self.state.path)
                    self.state.offset = 0
                    self._splitter.flusher.reset()
                f.seek(self.state.offset)
                attributes = self.attributes()
                buf = b""
                while True:
                    chunk = f.read(self._chunk_size)
                    buf += chunk
                    tokens, consumed = self._splitter.split(buf, at_eof=not chunk)
                    base = self.state.offset
                    for token in tokens:
                        self._emit(attributes, self._splitter.decode(token.content))
                        self.state.offset = base + token.end
                        emitted += 1
                        if token.truncated:
                            self._metrics.increment("records_truncated")
                    self.state.offset = base + consumed
                    buf = buf[consumed:]
                    if not chunk:
                        break
                    if shutdown is not None and shutdown.is_set():
                        logger.debug("Shutdown requested, ending read pass early: %s", self.state.path)
                        break
        except OSError as e:
            logger.warning("Failed to read %s: %s", self.state.path, e)
            self._metrics.increment("read_errors")
            return ReadResult(self.state.offset, emitted, e)
        finally:
            if emitted:
                self._metrics.increment("records_emitted", emitted)

        return ReadResult(self.state.offset, emitted)
