from __future__ import annotations
import logging
from .events import BaseEvent
from .redact import redact


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = redact(event.dict())
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts",))

        self.logger.debug(f"[EVENT] {etype}: {msg}")
