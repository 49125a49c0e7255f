from __future__ import annotations
import logging
from .events import BaseEvent

# the run log formatter already stamps time and run id
_OMIT = ("ts", "run_id")


def describe(event: BaseEvent) -> str:
    fields = " ".join(
        f"{k}={v}" for k, v in event.dict().items()
        if k not in _OMIT and v is not None
    )
    return f"{event.__class__.__name__} {fields}".rstrip()


class LoggerObserver:
    """Mirrors lifecycle events into the run log at DEBUG."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        self.logger.debug("event: %s", describe(event))
