"""One-call wiring of logging, log shipping and the cache-clear timer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from structlog.stdlib import BoundLogger

from lognexus.cache.timer import CacheClearTimer, start_cache_clear
from lognexus.config.settings import LognexusConfig
from lognexus.core.models import ShutdownReport
from lognexus.shipper.handler import ShipperHandler
from lognexus.shipper.storage import ObjectStore
from lognexus.shipper.stream import ErrorCallback, LogShipper, NullSink, create_shipper
from lognexus.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class LoggingSetup:
    config: LognexusConfig
    logger: BoundLogger
    shipper: Union[LogShipper, NullSink]
    cache_timer: Optional[CacheClearTimer] = None
    handler: Optional[ShipperHandler] = None

    async def close(self, timeout: Optional[float] = None) -> ShutdownReport:
        """Stop the cache timer and drain the shipper."""
        if self.cache_timer is not None:
            self.cache_timer.stop()
        report = await self.shipper.close(timeout)
        if self.handler is not None:
            logging.getLogger().removeHandler(self.handler)
        return report


async def init_logging(
    config: Optional[LognexusConfig] = None,
    *,
    store: Optional[ObjectStore] = None,
    on_error: Optional[ErrorCallback] = None,
) -> LoggingSetup:
    """
    Configure structlog, attach the S3 shipper and start the cache timer.

    Raises ConfigurationError when S3 logging is enabled but the bucket or
    credentials are missing; set ``enable_s3_logging=False`` to run with a
    NullSink instead.
    """
    config = config or LognexusConfig.from_env()

    shipper: Union[LogShipper, NullSink] = NullSink()
    handler: Optional[ShipperHandler] = None
    if config.enable_s3_logging:
        shipper = create_shipper(config.shipper, store=store, on_error=on_error)
        handler = ShipperHandler(shipper)

    configure_logging(
        level=config.log_level,
        json_output=config.json_logs,
        console=config.enable_console_logging,
        extra_handlers=[handler] if handler is not None else [],
    )
    await shipper.start()

    timer: Optional[CacheClearTimer] = None
    if config.cache_clear_interval:
        timer = start_cache_clear(config.cache_clear_interval)

    app_logger = get_logger(config.shipper.app_id)
    logger.info(
        "logging_initialized",
        app_id=config.shipper.app_id,
        s3_logging=config.enable_s3_logging,
        console_logging=config.enable_console_logging,
        cache_clear_interval=config.cache_clear_interval,
    )
    return LoggingSetup(
        config=config,
        logger=app_logger,
        shipper=shipper,
        cache_timer=timer,
        handler=handler,
    )


__all__ = ["LoggingSetup", "init_logging"]
