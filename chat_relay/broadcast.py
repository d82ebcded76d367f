import logging
from typing import Any, Iterable, List

from .protocol import ChatEnvelope, encode_envelope

logger = logging.getLogger(__name__)


def describe(connection) -> str:
    addr = getattr(connection, "remote_address", None)
    if addr:
        return f"{addr[0]}:{addr[1]}" if isinstance(addr, tuple) else str(addr)
    return "client"


async def _send_raw(connection, raw: str) -> bool:
    try:
        await connection.send(raw)
        return True
    except Exception as e:
        logger.warning("Failed to send to %s: %s", describe(connection), e)
        return False


async def dispatch_to_all(envelope: ChatEnvelope, connections: Iterable[Any]) -> List[Any]:
    """Send one envelope to every connection of a registry snapshot.

    The envelope is encoded once. A failed send is logged and skipped; the
    connections that failed are returned.
    """
    raw = encode_envelope(envelope)
    failed = []
    for connection in connections:
        if not await _send_raw(connection, raw):
            failed.append(connection)
    return failed


async def dispatch_to_one(envelope: ChatEnvelope, connection) -> bool:
    return await _send_raw(connection, encode_envelope(envelope))
