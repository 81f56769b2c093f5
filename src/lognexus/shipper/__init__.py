"""Log shipping: rotating segments uploaded to object storage."""

from lognexus.shipper.handler import ShipperHandler
from lognexus.shipper.storage import ObjectStore, S3ObjectStore
from lognexus.shipper.stream import LogShipper, NullSink, create_shipper

__all__ = [
    "LogShipper",
    "NullSink",
    "create_shipper",
    "ShipperHandler",
    "ObjectStore",
    "S3ObjectStore",
]
