"""
Monitoring utilities for lognexus.
"""

from lognexus.monitoring.metrics import (
    CACHE_CLEARS,
    CONTENT_TYPE_LATEST,
    RETRIEVED_OBJECTS,
    SEGMENT_UPLOADS,
    SEGMENTS_SEALED,
    SHIPPER_BYTES_WRITTEN,
    generate_latest,
)

__all__ = [
    "SHIPPER_BYTES_WRITTEN",
    "SEGMENTS_SEALED",
    "SEGMENT_UPLOADS",
    "RETRIEVED_OBJECTS",
    "CACHE_CLEARS",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
