import asyncio
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class NameTaken(ValueError):
    def __init__(self, name: str):
        super().__init__(f"name already in use: {name!r}")
        self.name = name


class AlreadyRegistered(ValueError):
    pass


class NotRegistered(LookupError):
    pass


class ParticipantRegistry:
    """Live connection -> display name table.

    The only shared mutable state of the relay. Every read and write goes
    through ``self.lock``; callers never touch the dictionaries directly and
    must not hold the lock while sending.
    """

    def __init__(self):
        # Map connection -> name (insertion ordered)
        self._names: Dict[Any, str] = {}

        # Map name -> connection, for the uniqueness check
        self._owners: Dict[str, Any] = {}

        self.lock = asyncio.Lock()

    async def register(self, connection, name: str) -> None:
        async with self.lock:
            if connection in self._names:
                raise AlreadyRegistered(
                    f"connection already named {self._names[connection]!r}"
                )
            if name in self._owners:
                raise NameTaken(name)
            self._names[connection] = name
            self._owners[name] = connection
        logger.debug("Registered %r", name)

    async def is_registered(self, connection) -> bool:
        async with self.lock:
            return connection in self._names

    async def name_of(self, connection) -> str:
        async with self.lock:
            try:
                return self._names[connection]
            except KeyError:
                raise NotRegistered("connection has no name") from None

    async def unregister(self, connection) -> Optional[str]:
        async with self.lock:
            name = self._names.pop(connection, None)
            if name is not None and self._owners.get(name) is connection:
                del self._owners[name]
        return name

    async def all_connections(self) -> List[Any]:
        async with self.lock:
            return list(self._names)

    async def names(self) -> List[str]:
        async with self.lock:
            return list(self._names.values())
