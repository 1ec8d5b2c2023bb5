"""Splitter: turns a byte stream into records (single-line or multi-line).

The splitter never holds bytes between passes. Each call scans the data from
the reader's committed offset and reports how far it consumed; whatever is
left (an unterminated line or an open multi-line record) is re-read on the
next pass. The only state carried across passes is the Flusher's clock,
which force-completes a pending record once it has stopped changing.
"""

import codecs
import enum
import logging
import re
import time
from dataclasses import dataclass

from filelog.errors import AmbiguousMultilineConfig, InvalidRegexError

logger = logging.getLogger(__name__)

DEFAULT_FLUSHER_TIMEOUT = 0.5

_BOMS = (
    codecs.BOM_UTF32_LE,
    codecs.BOM_UTF32_BE,
    codecs.BOM_UTF16_LE,
    codecs.BOM_UTF16_BE,
    codecs.BOM_UTF8,
)


class SplitMode(enum.Enum):
    LINE = "line"
    START_PATTERN = "start_pattern"
    END_PATTERN = "end_pattern"


@dataclass(frozen=True)
class SplitRule:
    mode: SplitMode
    pattern: re.Pattern | None = None

    @classmethod
    def from_patterns(cls, line_start_pattern: str = "", line_end_pattern: str = "") -> "SplitRule":
        if line_start_pattern and line_end_pattern:
            raise AmbiguousMultilineConfig(
                "Only one of line_start_pattern and line_end_pattern may be set"
            )
        if line_start_pattern:
            return cls(SplitMode.START_PATTERN, _compile(line_start_pattern, "line_start_pattern"))
        if line_end_pattern:
            return cls(SplitMode.END_PATTERN, _compile(line_end_pattern, "line_end_pattern"))
        return cls(SplitMode.LINE)


def _compile(pattern: str, name: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidRegexError(f"Invalid {name} {pattern!r}: {e}") from e


def encoded_newline(encoding: str) -> bytes:
    """Return the byte form of ``\\n`` in *encoding*, without a byte order mark."""
    newline = "\n".encode(encoding)
    for bom in _BOMS:
        if newline.startswith(bom) and len(newline) > len(bom):
            return newline[len(bom):]
    return newline


@dataclass(frozen=True)
class Token:
    content: bytes
    end: int             # position in the scanned data just past this record
    truncated: bool = False


class Flusher:
    """Tracks how long the pending data has been unchanged."""

    def __init__(self, timeout: float = DEFAULT_FLUSHER_TIMEOUT, clock=time.monotonic):
        self._timeout = timeout
        self._clock = clock
        self._pending = 0
        self._last_activity = 0.0

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def reset(self) -> None:
        self._pending = 0
        self._last_activity = self._clock()

    def should_flush(self, pending: int) -> bool:
        now = self._clock()
        if pending != self._pending:
            self._pending = pending
            self._last_activity = now
        return now - self._last_activity >= self._timeout


class Splitter:
    def __init__(self, rule: SplitRule, encoding: str = "utf-8", max_log_size: int = 1024 * 1024,
                 flusher: Flusher | None = None):
        self._rule = rule
        self._encoding = encoding
        self._newline = encoded_newline(encoding)
        self._carriage_return = "\r".encode(encoding)[-len(self._newline):]
        self._width = len(self._newline)
        # keep truncation points on code unit boundaries
        self._max_log_size = max(self._width, max_log_size - max_log_size % self._width)
        self._flusher = flusher or Flusher()

    @property
    def mode(self) -> SplitMode:
        return self._rule.mode

    @property
    def flusher(self) -> Flusher:
        return self._flusher

    def split(self, data: bytes, at_eof: bool = False) -> tuple[list[Token], int]:
        """Return the complete records in *data* and the number of bytes consumed.

        With *at_eof* the Flusher may complete the remaining partial record.
        """
        tokens: list[Token] = []
        consumed = 0
        while True:
            consumed = self._scan(data, consumed, tokens)
            if len(data) - consumed <= self._max_log_size:
                break
            piece = data[consumed:consumed + self._max_log_size]
            consumed += len(piece)
            logger.warning("Record exceeds max_log_size (%d bytes), flushing truncated record",
                           self._max_log_size)
            tokens.append(Token(piece, consumed, truncated=True))

        if tokens:
            self._flusher.reset()

        if at_eof and consumed < len(data):
            if self._flusher.should_flush(len(data) - consumed):
                content = self._trim(data[consumed:])
                consumed = len(data)
                if content:
                    tokens.append(Token(content, consumed))
                self._flusher.reset()
        elif consumed == len(data):
            self._flusher.reset()
        return tokens, consumed

    def decode(self, content: bytes) -> str:
        return content.decode(self._encoding, errors="replace")

    def _lines(self, data: bytes, start: int):
        """Yield (line_start, content_end, line_end) for newline-terminated lines."""
        pos = start
        search = start
        while True:
            idx = data.find(self._newline, search)
            if idx < 0:
                return
            if idx % self._width:
                search = idx + 1
                continue
            end = idx + self._width
            yield pos, self._strip_cr(data, pos, idx), end
            pos = search = end

    def _strip_cr(self, data: bytes, start: int, end: int) -> int:
        cr = self._carriage_return
        if end - start >= len(cr) and data[end - len(cr):end] == cr:
            return end - len(cr)
        return end

    def _trim(self, content: bytes) -> bytes:
        if content.endswith(self._newline):
            content = content[:-self._width]
        end = self._strip_cr(content, 0, len(content))
        return content[:end]

    def _matches(self, data: bytes, start: int, end: int) -> bool:
        return self._rule.pattern.search(self.decode(data[start:end])) is not None

    def _emit(self, tokens: list[Token], data: bytes, start: int, stop: int, end: int) -> None:
        """Append data[start:stop] as a record ending at *end*, in max_log_size pieces."""
        limit = self._max_log_size
        while stop - start > limit:
            logger.warning("Record exceeds max_log_size (%d bytes), flushing truncated record", limit)
            tokens.append(Token(data[start:start + limit], start + limit, truncated=True))
            start += limit
        if stop > start:
            tokens.append(Token(data[start:stop], end))

    def _scan(self, data: bytes, start: int, tokens: list[Token]) -> int:
        mode = self._rule.mode
        record_start = start

        if mode is SplitMode.LINE:
            for line_start, content_end, line_end in self._lines(data, start):
                self._emit(tokens, data, line_start, content_end, line_end)
                record_start = line_end
            return record_start

        previous_content_end = start
        for line_start, content_end, line_end in self._lines(data, start):
            if mode is SplitMode.START_PATTERN:
                if line_start > record_start and self._matches(data, line_start, content_end):
                    self._emit(tokens, data, record_start, previous_content_end, line_start)
                    record_start = line_start
                previous_content_end = content_end
            elif self._matches(data, line_start, content_end):
                self._emit(tokens, data, record_start, content_end, line_end)
                record_start = line_end
        return record_start
