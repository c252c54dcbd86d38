import struct
from datetime import datetime, timedelta, timezone

import ntplib

from timeassistant.errors import MalformedResponseError

NTP_PACKET_SIZE = 48
NTP_VERSION = 3
NTP_MODE_CLIENT = 3

# 1900-01-01T00:00:00Z
NTP_EPOCH = datetime(1900, 1, 1, tzinfo=timezone.utc)

# Transmit timestamp: integer seconds and 32-bit binary fraction, big endian
_TRANSMIT_TIMESTAMP_OFFSET = 40
_TRANSMIT_TIMESTAMP = struct.Struct("!II")


def build_request():
    """Build the 48 byte client request (LI=0, VN=3, Mode=3, everything else zero)"""
    packet = ntplib.NTPPacket(version=NTP_VERSION, mode=NTP_MODE_CLIENT)
    return packet.to_data()


def ntp_to_datetime(seconds: int, fraction: int) -> datetime:
    """Convert an NTP timestamp to an aware UTC datetime with millisecond precision.

    The fraction is truncated to whole milliseconds before it is added.
    """
    milliseconds = seconds * 1000 + (fraction * 1000) // 2**32
    return NTP_EPOCH + timedelta(milliseconds=milliseconds)


def parse_response(data: bytes, round_trip: timedelta) -> datetime:
    """Read the server transmit time from a reply and compensate for network delay.

    Args:
        data (bytes): The raw reply, must be exactly 48 bytes
        round_trip (timedelta): Time between sending the request and receiving the reply

    Returns:
        datetime: Aware UTC timestamp advanced by half the round trip
    """
    if data is None or len(data) != NTP_PACKET_SIZE:
        size = 0 if data is None else len(data)
        raise MalformedResponseError(
            f"Expected a {NTP_PACKET_SIZE} byte NTP reply, got {size} bytes"
        )

    seconds, fraction = _TRANSMIT_TIMESTAMP.unpack_from(data, _TRANSMIT_TIMESTAMP_OFFSET)
    transmit_time = ntp_to_datetime(seconds, fraction)

    # The server stamps the reply when sending it; assume both legs take equally long
    return transmit_time + round_trip // 2
