"""Core data types: file identity, per-record attributes, reader state."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FileIdentity:
    """Content-derived identity: the first bytes of a file.

    Identities compare by prefix so that a file fingerprinted while shorter
    than the fingerprint size keeps its identity as it grows.
    """

    first_bytes: bytes

    @property
    def key(self) -> str:
        return self.first_bytes.hex()

    @classmethod
    def from_key(cls, key: str) -> "FileIdentity":
        return cls(bytes.fromhex(key))

    def matches(self, other: "FileIdentity") -> bool:
        if not self.first_bytes or not other.first_bytes:
            return False
        return (self.first_bytes.startswith(other.first_bytes)
                or other.first_bytes.startswith(self.first_bytes))

    def __len__(self) -> int:
        return len(self.first_bytes)


@dataclass(frozen=True)
class FileAttributes:
    path: str
    name: str
    identity: str
    labels: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "log.file.path": self.path,
            "log.file.name": self.name,
            "log.file.identity": self.identity,
        }
        data.update(self.labels)
        return data


@dataclass
class ReaderState:
    identity: FileIdentity
    path: str
    offset: int = 0


@dataclass(frozen=True)
class LogEntry:
    body: str
    attributes: FileAttributes

    def to_dict(self) -> dict:
        return {"body": self.body, "attributes": self.attributes.to_dict()}
