"""Prometheus metrics for lognexus components."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Shipper
SHIPPER_BYTES_WRITTEN = Counter(
    "lognexus_shipper_bytes_written_total",
    "Bytes accepted by the shipper write path",
    ["app_id"],
)
SEGMENTS_SEALED = Counter(
    "lognexus_shipper_segments_sealed_total",
    "Segments sealed for upload",
    ["app_id", "reason"],
)
SEGMENT_UPLOADS = Counter(
    "lognexus_shipper_uploads_total",
    "Segment upload outcomes",
    ["app_id", "outcome"],
)
UPLOAD_RETRIES = Counter(
    "lognexus_shipper_upload_retries_total",
    "Retried segment uploads",
    ["app_id"],
)
PENDING_UPLOADS = Gauge(
    "lognexus_shipper_pending_uploads",
    "Sealed segments not yet confirmed uploaded",
    ["app_id"],
)
UPLOAD_LATENCY = Histogram(
    "lognexus_shipper_upload_latency_seconds",
    "Latency of a single successful upload including retries",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 15, 60),
)

# Retriever
RETRIEVED_OBJECTS = Counter(
    "lognexus_retriever_objects_total",
    "Objects handled by the retriever",
    ["outcome"],
)

# Cache timer
CACHE_CLEARS = Counter(
    "lognexus_cache_clears_total",
    "Cache clear runs",
    ["outcome"],
)

__all__ = [
    "SHIPPER_BYTES_WRITTEN",
    "SEGMENTS_SEALED",
    "SEGMENT_UPLOADS",
    "UPLOAD_RETRIES",
    "PENDING_UPLOADS",
    "UPLOAD_LATENCY",
    "RETRIEVED_OBJECTS",
    "CACHE_CLEARS",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
