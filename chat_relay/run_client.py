import argparse
import asyncio
import logging
import sys

from .client import CLOSE_COMMAND, ChatClient


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.WARNING, format="%(asctime)s %(levelname)s %(message)s"
    )

    ap = argparse.ArgumentParser(description="Chat relay console client")
    ap.add_argument("hostname", help="Server host")
    ap.add_argument("port", type=int, help="Server port")
    ap.add_argument("name", help="Display name to claim")
    args = ap.parse_args(argv)

    print(f"Type a message and press <RETURN>; {CLOSE_COMMAND} leaves the chat.")
    client = ChatClient(args.name, host=args.hostname, port=args.port)
    try:
        asyncio.run(client.run_client())
    except OSError as e:
        logging.error("Could not connect to ws://%s:%s: %s", args.hostname, args.port, e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
