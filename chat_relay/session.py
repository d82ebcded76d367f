"""
Per-connection protocol state machine.

A connection starts UNNAMED. Its first payload is always a name claim; once
the claim succeeds every further payload is a chat line broadcast to all
named participants, the sender included. A collision is answered with a
rejection envelope and a server-side close.
"""

import logging
from datetime import tzinfo
from enum import Enum
from typing import Optional

from .broadcast import describe, dispatch_to_all, dispatch_to_one
from .protocol import make_chat_envelope, make_rejection_envelope
from .registry import NameTaken, ParticipantRegistry

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNNAMED = "unnamed"
    NAMED = "named"
    CLOSED = "closed"


class SessionClosedError(RuntimeError):
    pass


class ChatSession:
    def __init__(
        self,
        connection,
        registry: ParticipantRegistry,
        tz: Optional[tzinfo] = None,
    ):
        self.connection = connection
        self.registry = registry
        self.tz = tz
        self.state = SessionState.UNNAMED
        self.name: Optional[str] = None

    @property
    def peer(self) -> str:
        return describe(self.connection)

    def on_connect(self) -> None:
        logger.info("Client <%s> connected", self.peer)

    async def on_payload(self, text: str) -> None:
        if self.state is SessionState.CLOSED:
            raise SessionClosedError(f"payload on closed session <{self.peer}>")
        if self.state is SessionState.UNNAMED:
            await self._claim_name(text)
        else:
            await self._broadcast(text)

    def on_error(self, err: BaseException) -> None:
        logger.error("Connection error on <%s>: %s", self.peer, err)

    async def on_close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        if self.state is SessionState.NAMED:
            await self.registry.unregister(self.connection)
            logger.info("User %r left", self.name)
        self.state = SessionState.CLOSED
        logger.info("Client <%s> disconnected", self.peer)

    async def _claim_name(self, name: str) -> None:
        try:
            await self.registry.register(self.connection, name)
        except NameTaken:
            logger.warning("Client <%s> rejected: name %r already in use", self.peer, name)
            await self._reject(name)
            return
        self.name = name
        self.state = SessionState.NAMED
        logger.info("Client <%s> joined as %r", self.peer, name)

    async def _reject(self, name: str) -> None:
        await dispatch_to_one(make_rejection_envelope(name, tz=self.tz), self.connection)
        try:
            await self.connection.close()
        except Exception as e:
            logger.warning("Failed to close <%s>: %s", self.peer, e)
        await self.registry.unregister(self.connection)
        self.state = SessionState.CLOSED

    async def _broadcast(self, text: str) -> None:
        uid = await self.registry.name_of(self.connection)
        envelope = make_chat_envelope(uid, text, tz=self.tz)
        logger.info("Msg rcv: %s @ %s => %s", envelope.uid, envelope.ts, envelope.msg)

        recipients = await self.registry.all_connections()
        failed = await dispatch_to_all(envelope, recipients)
        if failed:
            logger.warning(
                "Broadcast from %r reached %d of %d recipients",
                uid,
                len(recipients) - len(failed),
                len(recipients),
            )
