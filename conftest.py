import asyncio
import os
import struct
import tempfile
from datetime import timedelta

import pytest

# The shared Logger reads LOG_DIR once, keep test logs out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="timeassistant-logs-"))

from timeassistant.errors import TransportError  # noqa: E402
from timeassistant.utils.logging import Logger  # noqa: E402

# Bind the console handler to the session stderr before any test captures it
Logger()

# Seconds between 1900-01-01 and 2000-01-01
SECONDS_TO_2000 = 3155673600


def make_reply(seconds=SECONDS_TO_2000, fraction=0, size=48):
    """Build a server reply with the given transmit timestamp"""
    data = bytearray(48)
    data[0] = 0x1C  # LI=0, VN=3, Mode=4
    data[1] = 2
    struct.pack_into("!II", data, 40, seconds, fraction)
    return bytes(data[:size]) + bytes(max(0, size - 48))


class FakeTransport:
    """Stands in for NtpTransport, replies according to its mode.

    mode "reply" answers on the next loop iteration, "immediate" answers
    inside send(), "silent" never answers, "send_error" fails in send() and
    "late_error" reports an endpoint error after sending.
    """

    instances = []

    def __init__(self, mode="reply", data=None, round_trip=None, delay=0.0):
        self.mode = mode
        self.data = make_reply() if data is None else data
        self.round_trip = timedelta(milliseconds=40) if round_trip is None else round_trip
        self.delay = delay
        self.sent = []
        self.close_calls = 0
        self.on_receive = None
        self.on_error = None
        FakeTransport.instances.append(self)

    async def send(self, server, port, payload, on_receive, on_error=None):
        self.sent.append((server, port, payload))
        self.on_receive = on_receive
        self.on_error = on_error
        loop = asyncio.get_running_loop()
        if self.mode == "send_error":
            raise TransportError(f"Could not send NTP request to {server}:{port}: unreachable")
        if self.mode == "immediate":
            on_receive(self.data, self.round_trip)
        elif self.mode == "reply":
            loop.call_later(self.delay, on_receive, self.data, self.round_trip)
        elif self.mode == "late_error":
            loop.call_later(self.delay, on_error, TransportError("connection refused"))

    def close(self):
        self.close_calls += 1


@pytest.fixture
def fake_transports():
    FakeTransport.instances = []
    yield FakeTransport.instances
    FakeTransport.instances = []


@pytest.fixture
def transport_factory(fake_transports):
    """Return a function building a transport_factory for a given FakeTransport mode"""
    def factory(mode="reply", **kwargs):
        return lambda: FakeTransport(mode=mode, **kwargs)
    return factory
