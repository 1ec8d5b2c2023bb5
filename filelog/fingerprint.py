"""Fingerprinter: derive a file's identity from a bounded prefix of its bytes."""

from filelog.models import FileIdentity

DEFAULT_FINGERPRINT_SIZE = 1000


def fingerprint(path: str, max_bytes: int = DEFAULT_FINGERPRINT_SIZE, opener=open) -> FileIdentity:
    """Read up to *max_bytes* from the start of *path*.

    Files shorter than *max_bytes* fingerprint on their full content and are
    re-fingerprinted every cycle; prefix matching keeps them attached to
    their stream as they grow. OSError propagates to the caller.
    """
    with opener(path, "rb") as f:
        first = f.read(max_bytes)
    return FileIdentity(first)
