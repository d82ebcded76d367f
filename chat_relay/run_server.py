import asyncio
import logging
import signal
import sys
import threading
from typing import Optional, Sequence

from .config import ILLEGAL_ARGUMENTS, ConfigError, RelayConfig, parse_args
from .server import BindError, ChatRelayServer

EXIT_COMMAND = "exit"


def _watch_console(loop: asyncio.AbstractEventLoop, stop: asyncio.Event, stream=None) -> None:
    # Runs in a daemon thread; blocking reads must stay off the event loop
    stream = stream or sys.stdin
    for line in stream:
        if line.strip() == EXIT_COMMAND:
            logging.info("Console requested shutdown")
            loop.call_soon_threadsafe(stop.set)
            return


async def _run(config: RelayConfig, console: bool = True) -> None:
    server = ChatRelayServer(config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows may not support SIGTERM
            pass

    if console:
        threading.Thread(
            target=_watch_console, args=(loop, stop), name="console", daemon=True
        ).start()

    logging.info("Type '%s' to stop the server", EXIT_COMMAND)
    await server.serve(stop)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(message)s"
    )
    if logging.getLevelName(level) > logging.DEBUG:
        logging.getLogger("websockets").setLevel(logging.WARNING)


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = parse_args(argv)
    except ConfigError as e:
        print(e, file=sys.stderr)
        if str(e) != ILLEGAL_ARGUMENTS:
            print(ILLEGAL_ARGUMENTS, file=sys.stderr)
        return 2

    _configure_logging(config.log_level)
    try:
        asyncio.run(_run(config))
    except BindError:
        logging.exception("Could not start chat relay")
        return 1
    except KeyboardInterrupt:
        pass
    logging.info("Server shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
