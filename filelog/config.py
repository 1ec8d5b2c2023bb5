"""Configuration: frozen dataclass loaded from a YAML document.

Durations accept bare numbers (seconds) or a unit suffix (``ms``, ``s``,
``m``, ``h``). Byte sizes accept bare numbers or a case-insensitive suffix
(``kb``, ``kib``, ``mb``, ``mib``, ``gb``, ``gib``); fractions are allowed.
"""

import codecs
import logging
import os
import re
from dataclasses import dataclass, field

import yaml

from filelog.errors import ConfigError, EncodingError

logger = logging.getLogger(__name__)

START_AT_CHOICES = ("beginning", "end")

_KNOWN_KEYS = frozenset({
    "include", "exclude", "poll_interval", "fingerprint_size", "max_log_size",
    "max_concurrent_files", "encoding", "start_at", "multiline", "flusher_timeout",
    "checkpoint_retention", "attributes", "checkpoint_file",
})
_MULTILINE_KEYS = frozenset({"line_start_pattern", "line_end_pattern"})

_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

_BYTE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1000,
    "kib": 1024,
    "mb": 1000 ** 2,
    "mib": 1024 ** 2,
    "gb": 1000 ** 3,
    "gib": 1024 ** 3,
}

_QUANTITY_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([a-zA-Z]*)\s*$")


def parse_duration(value) -> float:
    """Return a duration in seconds from a number or a unit-suffixed string."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _QUANTITY_RE.match(str(value))
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    unit = unit.lower() or "s"
    if unit not in _DURATION_UNITS:
        raise ConfigError(f"Unknown duration unit {unit!r} in {value!r}")
    return float(number) * _DURATION_UNITS[unit]


def parse_byte_size(value) -> int:
    """Return a byte count from a number or a unit-suffixed string."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid byte size: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    match = _QUANTITY_RE.match(str(value))
    if not match:
        raise ConfigError(f"Invalid byte size: {value!r}")
    number, unit = match.groups()
    unit = unit.lower()
    if unit not in _BYTE_UNITS:
        raise ConfigError(f"Unknown byte size unit {unit!r} in {value!r}")
    return int(round(float(number) * _BYTE_UNITS[unit]))


def lookup_encoding(name: str) -> str:
    """Resolve an encoding name case-insensitively to its canonical codec name."""
    try:
        canonical = codecs.lookup(name).name
        # rejects bytes-to-bytes codecs such as base64
        "\n".encode(canonical)
    except LookupError as e:
        raise EncodingError(f"Unknown encoding {name!r}") from e
    return canonical


@dataclass(frozen=True)
class Config:
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    poll_interval: float = 0.2
    fingerprint_size: int = 1000
    max_log_size: int = 1024 * 1024  # 1 MiB
    max_concurrent_files: int = 1024
    encoding: str = "utf-8"
    start_at: str = "end"
    line_start_pattern: str = ""
    line_end_pattern: str = ""
    flusher_timeout: float = 0.5
    checkpoint_retention: float = 60.0
    attributes: dict = field(default_factory=dict)
    checkpoint_file: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "Config":
        """Build a Config from a parsed YAML mapping, converting unit strings."""
        d = _as_mapping(d, "config")
        _reject_unknown(d, _KNOWN_KEYS, "config")
        multiline = _as_mapping(d.get("multiline"), "multiline")
        _reject_unknown(multiline, _MULTILINE_KEYS, "multiline")
        kwargs: dict = {
            "include": _as_list(d.get("include"), "include"),
            "exclude": _as_list(d.get("exclude"), "exclude"),
            "line_start_pattern": multiline.get("line_start_pattern", ""),
            "line_end_pattern": multiline.get("line_end_pattern", ""),
            "attributes": _as_mapping(d.get("attributes"), "attributes"),
        }
        if "poll_interval" in d:
            kwargs["poll_interval"] = parse_duration(d["poll_interval"])
        if "fingerprint_size" in d:
            kwargs["fingerprint_size"] = parse_byte_size(d["fingerprint_size"])
        if "max_log_size" in d:
            kwargs["max_log_size"] = parse_byte_size(d["max_log_size"])
        if "max_concurrent_files" in d:
            kwargs["max_concurrent_files"] = _as_int(d["max_concurrent_files"], "max_concurrent_files")
        if "encoding" in d:
            kwargs["encoding"] = str(d["encoding"])
        if "start_at" in d:
            kwargs["start_at"] = str(d["start_at"])
        if "flusher_timeout" in d:
            kwargs["flusher_timeout"] = parse_duration(d["flusher_timeout"])
        if "checkpoint_retention" in d:
            kwargs["checkpoint_retention"] = parse_duration(d["checkpoint_retention"])
        if "checkpoint_file" in d:
            kwargs["checkpoint_file"] = str(d["checkpoint_file"])
        return cls(**kwargs)

    def validate(self) -> None:
        """Check scalar options. Pattern, regex and encoding checks live in build()."""
        if not self.include:
            raise ConfigError("At least one include pattern is required")
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.fingerprint_size < 1:
            raise ConfigError(f"fingerprint_size must be at least 1 byte, got {self.fingerprint_size}")
        if self.max_log_size < 1:
            raise ConfigError(f"max_log_size must be at least 1 byte, got {self.max_log_size}")
        if self.max_concurrent_files < 1:
            raise ConfigError(
                f"max_concurrent_files must be at least 1, got {self.max_concurrent_files}"
            )
        if self.start_at not in START_AT_CHOICES:
            raise ConfigError(f"start_at must be one of {START_AT_CHOICES}, got {self.start_at!r}")
        if self.flusher_timeout < 0:
            raise ConfigError(f"flusher_timeout must not be negative, got {self.flusher_timeout}")
        if self.checkpoint_retention < 0:
            raise ConfigError(
                f"checkpoint_retention must not be negative, got {self.checkpoint_retention}"
            )


def _as_mapping(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(value).__name__}")
    return dict(value)


def _reject_unknown(d: dict, known: frozenset, name: str) -> None:
    unknown = sorted(str(k) for k in d if k not in known)
    if unknown:
        raise ConfigError(f"Unknown {name} option(s): {', '.join(unknown)}")


def _as_list(value, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list of patterns")
    return [str(v) for v in value]


def _as_int(value, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def load_yaml(path: str = "config.yaml") -> dict:
    """Load the YAML config at *path*, overridable via ``CONFIG_PATH``.

    The options may sit at the top level or under a ``filelog`` key.
    """
    path = os.environ.get("CONFIG_PATH", path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    logger.info("Loaded config from %s", path)
    if isinstance(data, dict) and "filelog" in data:
        return data["filelog"] or {}
    return data
