"""
Console client for the chat relay.

Sends the display name as the first frame, then every typed line as a chat
message. Incoming envelopes are printed as ``[ts] uid: msg``.
"""

import asyncio
import logging
import sys
import threading

import websockets
from colorama import Fore, Style
from colorama import init as colorama_init
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from .protocol import NAME_IN_USE_TEMPLATE, ChatEnvelope, DecodeError, decode_envelope

logger = logging.getLogger(__name__)

CLOSE_COMMAND = "/quit"


def render_envelope(envelope: ChatEnvelope, own_name: str) -> str:
    line = f"[{envelope.ts}] {envelope.uid}: {envelope.msg}"
    if envelope.uid == own_name and envelope.msg == NAME_IN_USE_TEMPLATE.format(name=own_name):
        return f"{Fore.RED}{Style.BRIGHT}{line}{Style.RESET_ALL}"
    if envelope.uid == own_name:
        return f"{Fore.GREEN}{line}{Style.RESET_ALL}"
    return f"{Fore.CYAN}{line}{Style.RESET_ALL}"


def _read_lines(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, stream) -> None:
    for line in stream:
        loop.call_soon_threadsafe(queue.put_nowait, line.rstrip("\n"))
    loop.call_soon_threadsafe(queue.put_nowait, None)


class ChatClient:
    def __init__(self, name: str, host: str = "localhost", port: int = 8765, stream=None):
        self.name = name
        self.uri = f"ws://{host}:{port}"
        self.stream = stream or sys.stdin
        self.out = sys.stdout

    async def sender(self, ws):
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue = asyncio.Queue()
        threading.Thread(
            target=_read_lines, args=(loop, lines, self.stream), name="stdin", daemon=True
        ).start()
        while True:
            line = await lines.get()
            if line is None or line.strip() == CLOSE_COMMAND:
                await ws.close()
                return
            try:
                await ws.send(line)
            except ConnectionClosed:
                return

    async def receiver(self, ws):
        try:
            async for raw in ws:
                try:
                    envelope = decode_envelope(raw)
                except DecodeError as e:
                    logger.warning("Dropping malformed frame: %s", e)
                    continue
                print(render_envelope(envelope, self.name), file=self.out)
        except ConnectionClosedError as e:
            logger.error("Connection lost: %s", e)

    async def run_client(self):
        colorama_init()
        async with websockets.connect(self.uri) as ws:
            print(f"{Fore.GREEN}{Style.BRIGHT}Connected to {self.uri} as {self.name}{Style.RESET_ALL}", file=self.out)
            await ws.send(self.name)

            tasks = [
                asyncio.create_task(self.sender(ws)),
                asyncio.create_task(self.receiver(ws)),
            ]
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            for task in done:
                task.result()
        print(f"{Fore.YELLOW}Disconnected{Style.RESET_ALL}", file=self.out)
