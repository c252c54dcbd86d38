import asyncio
import threading
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional

from timeassistant.clock.events import ClockSynchronized, SynchronizationEvents
from timeassistant.errors import (
    MalformedResponseError,
    SynchronizationTimeoutError,
    TimeAssistantError,
)
from timeassistant.ntp.packet_codec import build_request, parse_response
from timeassistant.ntp.transport import NTP_PORT, NtpTransport, normalize_server
from timeassistant.utils.logging import Logger

REQUEST_TIMEOUT_MS = 5000  # also the smallest timeout synchronize() will wait
WAITING_CYCLE_MS = 100


class _Attempt:
    """Bookkeeping for one synchronize() call that won the gate"""

    def __init__(self, server):
        self.server = server
        self.completed = False
        self.error = None


class OffsetClock:
    """Local clock corrected by the offset measured against an NTP server.

    Create one instance per application and share it. synchronize() measures
    the offset with a single NTP exchange; the current_* accessors add the
    cached offset to the local clock and never touch the network.

    All mutable state (offset and the synchronization gate) is guarded by one
    lock. The lock is never held across an await or while listeners run.
    """

    def __init__(self, transport_factory=NtpTransport, port=NTP_PORT):
        self.logger = Logger()
        self.transport_factory = transport_factory
        self.port = port
        self.events = SynchronizationEvents()

        self._lock = threading.Lock()
        self._offset = timedelta(0)
        self._attempt = None

    async def synchronize(self, server: Optional[str] = None,
                          timeout_ms: int = REQUEST_TIMEOUT_MS,
                          throw_on_timeout: bool = True) -> Optional[datetime]:
        """Measure the offset to an NTP server and return the corrected UTC time.

        Only one synchronization runs at a time. A call made while another is
        in progress returns None immediately without sending anything.

        Args:
            server (str): NTP host, blank or None means pool.ntp.org
            timeout_ms (int): How long to wait for the reply, never less than 5000
            throw_on_timeout (bool): Raise SynchronizationTimeoutError on timeout
                instead of returning None

        Returns:
            datetime: Aware UTC time corrected by the new offset, or None
        """
        server = normalize_server(server)
        attempt = _Attempt(server)

        with self._lock:
            acquired = self._attempt is None
            if acquired:
                self._attempt = attempt

        if not acquired:
            self.logger.info(f"Synchronization already in progress, skipping request to {server}")
            return None

        transport = None
        try:
            timeout_ms = max(timeout_ms, REQUEST_TIMEOUT_MS)
            waiting_cycles = -(-timeout_ms // WAITING_CYCLE_MS)

            self.logger.info(f"Synchronizing clock with {server}:{self.port}")
            transport = self.transport_factory()
            await transport.send(
                server,
                self.port,
                build_request(),
                partial(self._handle_response, attempt),
                partial(self._handle_error, attempt),
            )

            waiting_cycle = 0
            while self._is_pending(attempt) and waiting_cycle < waiting_cycles:
                waiting_cycle += 1
                await asyncio.sleep(WAITING_CYCLE_MS / 1000)

            if attempt.error is not None:
                raise attempt.error

            if attempt.completed:
                return self.current_offset_utc_time()

            self.logger.warning(f"No reply from {server} within {timeout_ms}ms")
            if throw_on_timeout:
                raise SynchronizationTimeoutError(
                    f"No reply from {server} within {timeout_ms}ms"
                )
            return None
        except TimeAssistantError as e:
            if not isinstance(e, SynchronizationTimeoutError):
                self.logger.error(f"Synchronization with {server} failed: {e}")
            raise
        finally:
            if transport is not None:
                transport.close()

            with self._lock:
                if self._attempt is attempt:
                    self._attempt = None

    def _is_pending(self, attempt):
        with self._lock:
            return self._attempt is attempt and attempt.error is None

    def _handle_response(self, attempt, data, round_trip):
        try:
            network_time = parse_response(data, round_trip)
        except MalformedResponseError as e:
            self._handle_error(attempt, e)
            return

        with self._lock:
            accepted = self._attempt is attempt and attempt.error is None
            if accepted:
                self._offset = network_time - datetime.now(timezone.utc)
                offset = self._offset
                attempt.completed = True
                self._attempt = None

        if not accepted:
            self.logger.debug(f"Ignoring late reply from {attempt.server}")
            return

        self.logger.info(f"Clock synchronized with {attempt.server}, offset {offset.total_seconds():.3f}s")
        self.events.publish(ClockSynchronized(
            clock=self,
            synchronized_time_utc=self.current_offset_utc_time(),
            offset=offset,
        ))

    def _handle_error(self, attempt, error):
        with self._lock:
            if self._attempt is attempt and attempt.error is None:
                attempt.error = error

    def offset(self) -> timedelta:
        """The offset added to the local clock, zero until the first synchronization"""
        with self._lock:
            return self._offset

    def is_synchronizing(self) -> bool:
        with self._lock:
            return self._attempt is not None

    def current_local_time(self) -> datetime:
        """Corrected local time as a naive datetime"""
        return datetime.now() + self.offset()

    def current_utc_time(self) -> datetime:
        """Corrected UTC time as a naive datetime"""
        return datetime.now(timezone.utc).replace(tzinfo=None) + self.offset()

    def current_offset_local_time(self) -> datetime:
        """Corrected local time carrying the local UTC offset"""
        return datetime.now().astimezone() + self.offset()

    def current_offset_utc_time(self) -> datetime:
        """Corrected UTC time as an aware datetime"""
        return datetime.now(timezone.utc) + self.offset()

    def on_synchronized(self, listener):
        """Register a listener for ClockSynchronized events, returns the listener"""
        return self.events.subscribe(listener)

    def remove_listener(self, listener):
        self.events.unsubscribe(listener)
