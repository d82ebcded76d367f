import asyncio
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from .config import RelayConfig
from .registry import ParticipantRegistry
from .session import ChatSession, SessionState

logger = logging.getLogger(__name__)


class BindError(OSError):
    pass


class ChatRelayServer:
    def __init__(self, config: RelayConfig, registry: Optional[ParticipantRegistry] = None):
        self.config = config
        self.registry = registry if registry is not None else ParticipantRegistry()
        self.tz = config.tzinfo
        self.bound_port: Optional[int] = None
        self.started = asyncio.Event()

    async def handler(self, ws, path=None):
        session = ChatSession(ws, self.registry, tz=self.tz)
        session.on_connect()
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    try:
                        raw = raw.decode("utf-8")
                    except UnicodeDecodeError:
                        logger.warning("Dropping non UTF-8 frame from <%s>", session.peer)
                        continue
                await session.on_payload(raw)
                if session.state is SessionState.CLOSED:
                    break
        except ConnectionClosedOK:
            pass
        except ConnectionClosedError as e:
            session.on_error(e)
        finally:
            await session.on_close()

    async def _status_loop(self):
        while True:
            await asyncio.sleep(self.config.status_interval)
            logger.info("Connected users: %s", await self.registry.names())

    async def serve(self, stop: asyncio.Event) -> None:
        """Accept connections until ``stop`` is set."""
        try:
            server = await websockets.serve(
                self.handler,
                self.config.host,
                self.config.port,
                ping_interval=self.config.ping_interval,
                ping_timeout=self.config.ping_timeout,
            )
        except OSError as e:
            raise BindError(
                f"Error opening WebSocket on <{self.config.uri}>. WebSocket maybe in use?",
            ) from e

        sockets = list(server.sockets or [])
        if sockets:
            self.bound_port = sockets[0].getsockname()[1]
        logger.info("Chat relay listening on %s", self.config.uri)
        self.started.set()

        status_task = None
        if self.config.status_interval > 0:
            status_task = asyncio.create_task(self._status_loop())
        try:
            await stop.wait()
        finally:
            if status_task:
                status_task.cancel()
                try:
                    await status_task
                except asyncio.CancelledError:
                    pass
            server.close()
            await server.wait_closed()
            logger.info("Chat relay on %s stopped", self.config.uri)
