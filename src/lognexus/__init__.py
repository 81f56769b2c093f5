"""lognexus - structured logging with rotating S3 log shipping and retrieval."""

__version__ = "0.1.0"

from .bootstrap import LoggingSetup, init_logging  # noqa: E402
from .cache import CacheClearTimer, clear_cache, start_cache_clear, stop_cache_clear  # noqa: E402
from .config import LognexusConfig, RotationPolicy, S3Settings, ShipperConfig  # noqa: E402
from .errors import (  # noqa: E402
    ConfigurationError,
    DecompressionError,
    LognexusError,
    NotFoundError,
    ShipperClosedError,
    TransientTransferError,
    UploadExhaustedError,
)
from .retriever import LogRetriever, retrieve  # noqa: E402
from .shipper import LogShipper, NullSink, ShipperHandler, create_shipper  # noqa: E402

__all__ = [
    "init_logging",
    "LoggingSetup",
    "LogShipper",
    "NullSink",
    "ShipperHandler",
    "create_shipper",
    "LogRetriever",
    "retrieve",
    "CacheClearTimer",
    "clear_cache",
    "start_cache_clear",
    "stop_cache_clear",
    "LognexusConfig",
    "ShipperConfig",
    "S3Settings",
    "RotationPolicy",
    "LognexusError",
    "ConfigurationError",
    "TransientTransferError",
    "NotFoundError",
    "DecompressionError",
    "UploadExhaustedError",
    "ShipperClosedError",
]
