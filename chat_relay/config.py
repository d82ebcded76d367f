import argparse
import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ILLEGAL_ARGUMENTS = "Illegal arguments. Usage: <hostname> <port>"

HEARTBEAT_INTERVAL = 15
HEARTBEAT_TIMEOUT = 45
STATUS_INTERVAL = 20


class ConfigError(ValueError):
    pass


class _RaisingParser(argparse.ArgumentParser):
    def error(self, message):
        if "required" in message or "unrecognized arguments" in message:
            raise ConfigError(ILLEGAL_ARGUMENTS)
        raise ConfigError(message)


@dataclass
class RelayConfig:
    host: str
    port: int
    ping_interval: float = HEARTBEAT_INTERVAL
    ping_timeout: float = HEARTBEAT_TIMEOUT
    status_interval: float = STATUS_INTERVAL
    timezone: Optional[str] = None
    log_level: str = "INFO"

    @property
    def uri(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def tzinfo(self) -> Optional[ZoneInfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except ValueError:
        raise ConfigError(f"port must be an integer, got {raw!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range: {port}")
    return port


def _seconds(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number of seconds, got {raw!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"seconds must not be negative, got {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = _RaisingParser(description="WebSocket broadcast chat relay")
    parser.add_argument("hostname", help="Host name or address to bind")
    parser.add_argument("port", help="TCP port to bind")
    parser.add_argument(
        "--ping-interval",
        type=_seconds,
        default=os.getenv("CHAT_RELAY_PING_INTERVAL", str(HEARTBEAT_INTERVAL)),
        help="Seconds between keepalive pings",
    )
    parser.add_argument(
        "--ping-timeout",
        type=_seconds,
        default=os.getenv("CHAT_RELAY_PING_TIMEOUT", str(HEARTBEAT_TIMEOUT)),
        help="Seconds to wait for a pong before dropping the client",
    )
    parser.add_argument(
        "--status-interval",
        type=_seconds,
        default=os.getenv("CHAT_RELAY_STATUS_INTERVAL", str(STATUS_INTERVAL)),
        help="Seconds between status log lines (0 disables)",
    )
    parser.add_argument(
        "--timezone",
        default=os.getenv("CHAT_RELAY_TIMEZONE") or None,
        help="IANA time zone for message timestamps (default: server local time)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("CHAT_RELAY_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> RelayConfig:
    args = build_parser().parse_args(argv)

    level = args.log_level.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"unknown log level: {args.log_level}")

    if args.timezone:
        try:
            ZoneInfo(args.timezone)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            # names outside the zone database, including its directories
            raise ConfigError(f"unknown time zone: {args.timezone}") from None

    return RelayConfig(
        host=args.hostname,
        port=_parse_port(args.port),
        ping_interval=args.ping_interval,
        ping_timeout=args.ping_timeout,
        status_interval=args.status_interval,
        timezone=args.timezone,
        log_level=level,
    )
