"""Exception hierarchy for lognexus."""

from __future__ import annotations

from typing import Optional


class LognexusError(Exception):
    """Base class for all lognexus errors."""


class ConfigurationError(LognexusError):
    """Missing or invalid bucket, credentials or policy at construction time."""


class TransientTransferError(LognexusError):
    """Network or throttling failure while talking to object storage."""


class NotFoundError(LognexusError):
    """A listing returned no objects for the requested prefix."""

    def __init__(self, bucket: str, prefix: str) -> None:
        super().__init__(f"No log files found at s3://{bucket}/{prefix}")
        self.bucket = bucket
        self.prefix = prefix


class DecompressionError(LognexusError):
    """An object body is not valid gzip data."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to decompress {key}: {reason}")
        self.key = key
        self.reason = reason


class UploadExhaustedError(LognexusError):
    """A segment could not be uploaded; retries are used up or the error is permanent."""

    def __init__(
        self,
        key: str,
        content_length: int,
        attempts: int,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Upload of {key} ({content_length} bytes) failed after {attempts} attempt(s)"
        )
        self.key = key
        self.content_length = content_length
        self.attempts = attempts
        self.cause = cause


class ShipperClosedError(LognexusError):
    """Write attempted on a shipper that has been closed."""


__all__ = [
    "LognexusError",
    "ConfigurationError",
    "TransientTransferError",
    "NotFoundError",
    "DecompressionError",
    "UploadExhaustedError",
    "ShipperClosedError",
]
