import asyncio
import socket
import time
from datetime import timedelta

from timeassistant.errors import SynchronizationTimeoutError, TransportError
from timeassistant.utils.logging import Logger

DEFAULT_NTP_SERVER = "pool.ntp.org"
NTP_PORT = 123


def normalize_server(server):
    """Return the default NTP server for a missing or blank host name"""
    if server is None or not server.strip():
        return DEFAULT_NTP_SERVER
    return server.strip()


class _NtpProtocol(asyncio.DatagramProtocol):
    def __init__(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.transport._datagram_received(data)

    def error_received(self, exc):
        self.transport._error_received(exc)

    def connection_lost(self, exc):
        if exc is not None:
            self.transport._error_received(exc)


class NtpTransport:
    """One UDP exchange with an NTP server.

    The endpoint is opened by send() and closed exactly once: after the first
    reply, on an error, or by close().
    """

    def __init__(self):
        self.logger = Logger()
        self.server = None
        self.port = None
        self._endpoint = None
        self._on_receive = None
        self._on_error = None
        self._sent_at = None
        self._closed = False

    @property
    def closed(self):
        return self._closed

    async def send(self, server, port, payload, on_receive, on_error=None):
        """Open a datagram endpoint to the server and transmit the payload.

        Args:
            server (str): Host name or address, blank means pool.ntp.org
            port (int): UDP port of the server
            payload (bytes): Request to transmit
            on_receive (callable): Called with (data, round_trip) for the first reply
            on_error (callable): Called with a TransportError if the endpoint fails later
        """
        self.server = normalize_server(server)
        self.port = port
        self._on_receive = on_receive
        self._on_error = on_error

        loop = asyncio.get_running_loop()
        try:
            self._endpoint, _ = await loop.create_datagram_endpoint(
                lambda: _NtpProtocol(self),
                remote_addr=(self.server, self.port),
                family=socket.AF_INET,
            )
            self.logger.debug(f"NTP endpoint opened to {self.server}:{self.port}")

            self._sent_at = time.perf_counter_ns()
            self._endpoint.sendto(payload)
        except (OSError, ValueError) as e:
            # Host names the idna codec rejects raise UnicodeError, a ValueError
            self.close()
            raise TransportError(
                f"Could not send NTP request to {self.server}:{self.port}: {e}"
            ) from e
        except asyncio.CancelledError:
            self.close()
            raise

    async def request(self, server, port, payload, timeout):
        """Send the payload and wait for one reply.

        Returns:
            tuple: (data, round_trip) of the reply
        """
        loop = asyncio.get_running_loop()
        reply = loop.create_future()

        def on_receive(data, round_trip):
            if not reply.done():
                reply.set_result((data, round_trip))

        def on_error(error):
            if not reply.done():
                reply.set_exception(error)

        try:
            await self.send(server, port, payload, on_receive, on_error)
            try:
                return await asyncio.wait_for(reply, timeout)
            except asyncio.TimeoutError:
                raise SynchronizationTimeoutError(
                    f"No reply from {self.server}:{self.port} within {timeout}s"
                ) from None
        finally:
            self.close()

    def _datagram_received(self, data):
        if self._closed:
            return

        received_at = time.perf_counter_ns()
        round_trip = timedelta(microseconds=(received_at - self._sent_at) // 1000)
        on_receive = self._on_receive

        self.logger.debug(f"Received {len(data)} bytes from {self.server} after {round_trip}")
        self.close()
        on_receive(data, round_trip)

    def _error_received(self, exc):
        if self._closed:
            return

        on_error = self._on_error
        self.close()

        error = TransportError(f"NTP exchange with {self.server}:{self.port} failed: {exc}")
        error.__cause__ = exc
        if on_error is not None:
            on_error(error)
        else:
            self.logger.error(str(error))

    def close(self):
        """Release the endpoint, safe to call more than once"""
        if self._closed:
            return
        self._closed = True

        if self._endpoint is not None:
            self._endpoint.close()
            self._endpoint = None
            self.logger.debug(f"NTP endpoint to {self.server}:{self.port} closed")

        self._on_receive = None
        self._on_error = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
