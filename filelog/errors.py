"""Configuration errors raised while building the file consumer."""


class ConfigError(ValueError):
    """Base class for every build-time configuration failure."""


class PatternError(ConfigError):
    """An include/exclude glob pattern is empty or malformed."""


class AmbiguousMultilineConfig(ConfigError):
    """Both a line start pattern and a line end pattern were configured."""


class InvalidRegexError(ConfigError):
    """A multiline boundary pattern failed to compile."""


class EncodingError(ConfigError):
    """The configured text encoding is unknown."""
