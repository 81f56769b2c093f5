"""Data models for the log shipper and the retriever."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ShipperState(str, Enum):
    """Lifecycle of a LogShipper."""

    ACCUMULATING = "accumulating"
    ROTATING = "rotating"
    UPLOADING = "uploading"
    CLOSED = "closed"


class RotationReason(str, Enum):
    SIZE = "size"
    INTERVAL = "interval"
    SHUTDOWN = "shutdown"
    MANUAL = "manual"


@dataclass
class ActiveSegment:
    """The in-progress segment; only the shipper's write path mutates it."""

    key: str
    created_at: datetime
    buffer: bytearray = field(default_factory=bytearray)
    bytes_written: int = 0
    checkpointed_bytes: int = 0

    def append(self, chunk: bytes) -> None:
        self.buffer.extend(chunk)
        self.bytes_written += len(chunk)

    @property
    def is_empty(self) -> bool:
        return self.bytes_written == 0


@dataclass
class UploadTask:
    """A sealed segment (or checkpoint snapshot) waiting to be transferred."""

    sequence: int
    bucket: str
    key: str
    payload: bytes
    compressed: bool
    checkpoint: bool = False
    attempt: int = 0
    sealed_at: Optional[datetime] = None

    @property
    def content_length(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class RemoteObject:
    """One entry of a prefix listing."""

    key: str
    size: int
    last_modified: Optional[datetime] = None


@dataclass
class ShutdownReport:
    """Outcome of LogShipper.close()."""

    uploaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    unconfirmed: List[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def clean(self) -> bool:
        return not (self.failed or self.unconfirmed)


@dataclass
class RetrievalReport:
    """Outcome of one retrieval pass."""

    prefix: str
    listed: int = 0
    downloaded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


__all__ = [
    "ShipperState",
    "RotationReason",
    "ActiveSegment",
    "UploadTask",
    "RemoteObject",
    "ShutdownReport",
    "RetrievalReport",
]
