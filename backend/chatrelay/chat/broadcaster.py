"""Room fan-out over the transport's group primitive.

The chat handler only talks to the ``Broadcaster`` interface; the Socket.IO
implementation maps a room name onto a Socket.IO room. Delivery is
best-effort: a failure to reach one connection is logged and skipped, it never
aborts delivery to the others or propagates to the caller.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import socketio

logger = logging.getLogger(__name__)


class Broadcaster(ABC):
    """Delivery capability used by the chat session handler."""

    @abstractmethod
    async def join(self, connection_id: str, room: str) -> None:
        """Add a connection to a room's delivery group."""

    @abstractmethod
    async def leave(self, connection_id: str, room: str) -> None:
        """Remove a connection from a room's delivery group."""

    @abstractmethod
    async def to_group(
        self, event: str, payload: Any, room: str, skip: Optional[str] = None
    ) -> None:
        """Deliver to every member of a room, optionally skipping one connection."""

    @abstractmethod
    async def to_one(self, event: str, payload: Any, connection_id: str) -> None:
        """Deliver to a single connection."""

    @abstractmethod
    async def to_all(self, event: str, payload: Any) -> None:
        """Deliver to every connected client regardless of room."""

    @abstractmethod
    def is_connected(self, connection_id: str) -> bool:
        """Whether the transport still knows this connection."""


class SocketIOBroadcaster(Broadcaster):
    """Broadcaster backed by a ``socketio.AsyncServer``.

    Args:
        sio: The Socket.IO server.
        namespace: Socket.IO namespace all chat traffic uses.
    """

    def __init__(self, sio: socketio.AsyncServer, namespace: str = "/") -> None:
        self._sio = sio
        self._namespace = namespace

    async def join(self, connection_id: str, room: str) -> None:
        await self._sio.enter_room(connection_id, room, namespace=self._namespace)

    async def leave(self, connection_id: str, room: str) -> None:
        await self._sio.leave_room(connection_id, room, namespace=self._namespace)

    async def to_group(
        self, event: str, payload: Any, room: str, skip: Optional[str] = None
    ) -> None:
        await self._safe_emit(event, payload, to=room, skip_sid=skip)

    async def to_one(self, event: str, payload: Any, connection_id: str) -> None:
        await self._safe_emit(event, payload, to=connection_id)

    async def to_all(self, event: str, payload: Any) -> None:
        await self._safe_emit(event, payload)

    def is_connected(self, connection_id: str) -> bool:
        return bool(self._sio.manager.is_connected(connection_id, self._namespace))

    async def _safe_emit(self, event: str, payload: Any, **kwargs: Any) -> bool:
        """Emit an event, logging instead of raising on delivery failure.

        Returns:
            True if the emit completed, False if it failed.
        """
        try:
            await self._sio.emit(event, payload, namespace=self._namespace, **kwargs)
            return True
        except Exception as e:
            logger.debug(f"Failed to deliver {event}: {e}")
            return False
