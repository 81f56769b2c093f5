"""lognexus core types and helpers."""

from .compression import GzipStreamDecoder, gzip_bytes
from .models import (
    ActiveSegment,
    RemoteObject,
    RetrievalReport,
    RotationReason,
    ShipperState,
    ShutdownReport,
    UploadTask,
)
from .naming import ObjectKeyNamer

__all__ = [
    "ActiveSegment",
    "UploadTask",
    "RemoteObject",
    "ShipperState",
    "RotationReason",
    "ShutdownReport",
    "RetrievalReport",
    "ObjectKeyNamer",
    "GzipStreamDecoder",
    "gzip_bytes",
]
