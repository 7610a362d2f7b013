# src/infractl/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Optional
from .events import BaseEvent

log = logging.getLogger("infractl")


class EventBus:
    def __init__(self, observers: Optional[List] = None):
        self._observers = observers or []

    def subscribe(self, observer) -> None:
        self._observers.append(observer)

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break a bootstrap run
                log.debug("observer %s failed: %s", ob.__class__.__name__, e)
