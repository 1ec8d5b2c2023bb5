"""Glob matcher: resolves include/exclude patterns to a concrete file set."""

import glob
import logging
import os

from filelog.errors import PatternError

logger = logging.getLogger(__name__)


def validate_pattern(pattern: str) -> None:
    """Raise PatternError for an empty pattern or an unterminated character class.

    A ``]`` directly after ``[``, ``[!`` or ``[^`` is a literal member of the
    class, as in fnmatch.
    """
    if not pattern:
        raise PatternError("Glob pattern must not be empty")
    i = 0
    n = len(pattern)
    while i < n:
        if pattern[i] == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                if pattern[j] == "/":
                    break
                j += 1
            if j >= n or pattern[j] != "]":
                raise PatternError(f"Unterminated character class in glob pattern {pattern!r}")
            i = j
        i += 1


class GlobMatcher:
    def __init__(self, include: list[str], exclude: list[str] | None = None):
        for pattern in list(include) + list(exclude or []):
            validate_pattern(pattern)
        self._include = list(include)
        self._exclude = list(exclude or [])

    @property
    def include(self) -> list[str]:
        return list(self._include)

    @property
    def exclude(self) -> list[str]:
        return list(self._exclude)

    @staticmethod
    def _expand(patterns: list[str]) -> set[str]:
        found: set[str] = set()
        for pattern in patterns:
            for path in glob.glob(pattern, recursive=True, include_hidden=True):
                if os.path.isfile(path):
                    found.add(os.path.abspath(path))
        return found

    def match(self) -> list[str]:
        """Return sorted absolute paths matching any include and no exclude pattern."""
        included = self._expand(self._include)
        if not included:
            logger.debug("No files match include patterns %s", self._include)
            return []
        excluded = self._expand(self._exclude)
        return sorted(included - excluded)
