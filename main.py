import sys
import asyncio
import argparse
from timeassistant.clock.offset_clock import OffsetClock
from timeassistant.errors import TimeAssistantError
from timeassistant.ntp.packet_codec import build_request, parse_response
from timeassistant.ntp.transport import NtpTransport
from timeassistant.utils.config import load_settings
from timeassistant.utils.logging import Logger


def parse_args(settings, argv=None):
    """Parse command line arguments, defaults come from the environment"""
    parser = argparse.ArgumentParser(description='NTP Time Assistant')
    parser.add_argument('--server', default=settings.ntp_server, help='NTP server host name')
    parser.add_argument('--port', type=int, default=settings.ntp_port, help='NTP server UDP port')
    parser.add_argument('--timeout', type=int, default=settings.timeout_ms, help='Request timeout in milliseconds')
    parser.add_argument('--no-throw', action='store_true', default=not settings.throw_on_timeout,
                        help='Report a timeout as "no time" instead of an error')
    parser.add_argument('--raw', action='store_true', help='Print one raw exchange without synchronizing')
    parser.add_argument('--log-level', default=settings.log_level, help='DEBUG, INFO, WARNING, ERROR or CRITICAL')
    return parser.parse_args(argv)


async def probe(args):
    """Print the server transmit time and round trip of a single exchange"""
    async with NtpTransport() as transport:
        data, round_trip = await transport.request(args.server, args.port, build_request(), args.timeout / 1000)
    network_time = parse_response(data, round_trip)
    print(f"Server:     {transport.server}:{transport.port}")
    print(f"Round trip: {round_trip.total_seconds() * 1000:.1f} ms")
    print(f"Time (UTC): {network_time.isoformat()}")
    return 0


async def synchronize(args, transport_factory=NtpTransport):
    """Synchronize a clock once and print what it reports"""
    clock = OffsetClock(transport_factory=transport_factory, port=args.port)
    clock.on_synchronized(
        lambda event: print(f"Synchronized at {event.synchronized_time_utc.isoformat()}")
    )

    synchronized = await clock.synchronize(args.server, args.timeout, throw_on_timeout=not args.no_throw)
    if synchronized is None:
        print("No time received")
        return 2

    print(f"Offset:             {clock.offset().total_seconds():+.3f} s")
    print(f"Local time:         {clock.current_local_time().isoformat()}")
    print(f"UTC time:           {clock.current_utc_time().isoformat()}")
    print(f"Offset local time:  {clock.current_offset_local_time().isoformat()}")
    print(f"Offset UTC time:    {clock.current_offset_utc_time().isoformat()}")
    return 0


async def main(argv=None, transport_factory=NtpTransport):
    settings = load_settings()
    args = parse_args(settings, argv)

    logger = Logger()
    logger.set_level(args.log_level)

    try:
        if args.raw:
            return await probe(args)
        return await synchronize(args, transport_factory)
    except TimeAssistantError as e:
        logger.error(f"Error in main: {e}")
        return 1


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
