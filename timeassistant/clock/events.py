from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pyee.asyncio import AsyncIOEventEmitter

from timeassistant.utils.logging import Logger

CLOCK_SYNCHRONIZED = "clock_synchronized"


@dataclass(frozen=True)
class ClockSynchronized:
    """Emitted after every successful synchronization"""
    clock: Any
    synchronized_time_utc: datetime
    offset: timedelta


class SynchronizationEvents:
    """Listener registry for ClockSynchronized.

    Listeners are called with the event as the only argument. Plain functions
    run inline, coroutine functions are scheduled on the running loop. A
    listener that raises is logged and does not affect the other listeners.
    """

    def __init__(self):
        self.logger = Logger()
        self.emitter = AsyncIOEventEmitter()
        self.emitter.on("error", self._listener_failed)

    def subscribe(self, listener):
        self.emitter.on(CLOCK_SYNCHRONIZED, listener)
        return listener

    def unsubscribe(self, listener):
        self.emitter.remove_listener(CLOCK_SYNCHRONIZED, listener)

    def listener_count(self) -> int:
        return len(self.emitter.listeners(CLOCK_SYNCHRONIZED))

    def publish(self, event: ClockSynchronized):
        self.emitter.emit(CLOCK_SYNCHRONIZED, event)

    def _listener_failed(self, error):
        self.logger.error(f"ClockSynchronized listener failed: {error!r}")
