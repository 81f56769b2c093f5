from __future__ import annotations

import logging
from typing import Any, Protocol, Union

INTERNAL_LOGGER = "lognexus"


class Sink(Protocol):
    def write(self, data: Union[bytes, str]) -> Any: ...


class ExcludeInternalRecords(logging.Filter):
    """Reject records from lognexus' own loggers; the shipper must not ship its own events."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        return not (name == INTERNAL_LOGGER or name.startswith(INTERNAL_LOGGER + "."))


class ShipperHandler(logging.Handler):
    """Forward each formatted record, newline-terminated, to a sink."""

    terminator = "\n"

    def __init__(self, sink: Sink, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.sink = sink
        self.addFilter(ExcludeInternalRecords())

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self.sink, "closed", False):
            return
        try:
            self.sink.write(self.format(record) + self.terminator)
        except Exception:  # noqa: BLE001 - logging must not raise into callers
            self.handleError(record)


__all__ = ["ShipperHandler", "ExcludeInternalRecords", "Sink", "INTERNAL_LOGGER"]
