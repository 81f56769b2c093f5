"""Configuration models."""

from lognexus.config.settings import (
    LognexusConfig,
    RotationPolicy,
    S3Settings,
    ShipperConfig,
)

__all__ = ["S3Settings", "RotationPolicy", "ShipperConfig", "LognexusConfig"]
