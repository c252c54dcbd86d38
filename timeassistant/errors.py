"""
Exception types raised by the time assistant.

Everything derives from TimeAssistantError so callers can catch one type
around OffsetClock.synchronize().
"""


class TimeAssistantError(Exception):
    """Base class for all time assistant errors."""


class TransportError(TimeAssistantError):
    """Resolving, opening, sending on or receiving from the UDP endpoint failed."""


class MalformedResponseError(TimeAssistantError):
    """The server reply is not a 48 byte NTP packet."""


class SynchronizationTimeoutError(TimeAssistantError, TimeoutError):
    """No reply arrived within the effective request timeout."""


__all__ = [
    "TimeAssistantError",
    "TransportError",
    "MalformedResponseError",
    "SynchronizationTimeoutError",
]
