"""Chat protocol state machine for a single client connection.

Each public coroutine handles one client event. It validates against the
session registry, mutates the registry and/or the message store, fans the
resulting event out through the broadcaster, and returns the acknowledgment
for the requesting connection.

Protocol Events (client -> server):
    - login: Bind a username to the connection
    - join_room / leave_room: Room membership
    - message: Room message
    - private_message: Direct message to one user
    - typing: Typing indicator (no ack)
    - reaction: React to a stored message
    - read_messages: Read receipts
    - get_users: Online user list
    - disconnect: Connection closed

Input Handling:
    Payloads are coerced rather than rejected: non-dict payloads become {},
    values are string-cast, rooms default to the configured default room and
    text defaults to "". Only login refuses input (blank username).

Ordering:
    All registry/store mutation happens before the first await in a handler,
    so on a single event loop no two handlers interleave on shared state.
"""
import logging
from typing import Any, Dict, List, Optional

from .broadcaster import Broadcaster
from .errors import ChatError
from .sessions import SessionRegistry
from .store import (
    ChatMessage,
    DEFAULT_PAGE_SIZE,
    MessageStore,
    direct_room_key,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_ROOM = "global"

# Sender name for messages from connections that never logged in
ANONYMOUS = "Anonymous"

# Username reported in room notifications for connections that never logged in
UNKNOWN = "Unknown"


class NotificationType:
    USER_JOIN = "user_join"
    USER_LEFT = "user_left"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"


def _as_dict(data: Any) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _as_id_list(value: Any) -> List[Any]:
    # Submitted ids are echoed as sent; non-list values become [].
    return list(value) if isinstance(value, (list, tuple)) else []


class ChatSessionHandler:
    """Drives the chat protocol for every connection.

    Args:
        registry: Session registry (connection <-> username).
        store: Per-room message history.
        broadcaster: Fan-out capability over the transport.
        default_room: Room used when a payload names none.
        history_page_size: Number of messages replayed on join.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        store: MessageStore,
        broadcaster: Broadcaster,
        default_room: str = DEFAULT_ROOM,
        history_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.registry = registry
        self.store = store
        self.broadcaster = broadcaster
        self.default_room = default_room
        self.history_page_size = history_page_size

    # =========================================================================
    # Helpers
    # =========================================================================

    def _room(self, payload: Dict[str, Any]) -> str:
        room = payload.get("room")
        return str(room) if room else self.default_room

    def _notification(
        self, kind: str, username: Optional[str], room: Optional[str] = None
    ) -> dict:
        notification = {"type": kind, "username": username}
        if room is not None:
            notification["room"] = room
        notification["ts"] = utc_timestamp()
        return notification

    async def _broadcast_user_list(self) -> None:
        await self.broadcaster.to_all("user_list", self.registry.list_online())

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def login(self, connection_id: str, data: Any = None) -> dict:
        """Bind a username to the connection and announce it to everyone."""
        payload = _as_dict(data)
        try:
            session = self.registry.register(
                connection_id, _as_text(payload.get("username"))
            )
        except ChatError as e:
            logger.info(f"[Chat] Rejected login from {connection_id}: {e}")
            return {"success": False, "error": e.code}

        logger.info(f"[Chat] {session.username} logged in ({connection_id})")
        await self._broadcast_user_list()
        await self.broadcaster.to_all(
            "notification",
            self._notification(NotificationType.USER_JOIN, session.username),
        )
        return {
            "success": True,
            "user": {"username": session.username, "connectionId": connection_id},
        }

    async def disconnect(self, connection_id: str) -> None:
        """Drop the connection's session and announce the departure if it had one."""
        session = self.registry.remove(connection_id)
        if session is None:
            logger.info(f"[Chat] Connection {connection_id} disconnected")
            return

        logger.info(f"[Chat] {session.username} disconnected ({connection_id})")
        await self._broadcast_user_list()
        await self.broadcaster.to_all(
            "notification",
            self._notification(NotificationType.USER_LEFT, session.username),
        )

    async def get_users(self, connection_id: str, data: Any = None) -> dict:
        return {"users": self.registry.list_online()}

    # =========================================================================
    # Rooms
    # =========================================================================

    async def join_room(self, connection_id: str, data: Any = None) -> dict:
        """Join a room and replay its most recent history to the caller."""
        room = self._room(_as_dict(data))
        self.registry.set_room(connection_id, room)
        history = self.store.list(room, 1, self.history_page_size)
        username = self.registry.username_for(connection_id) or UNKNOWN

        await self.broadcaster.join(connection_id, room)
        await self.broadcaster.to_one(
            "room_history",
            {"room": room, "messages": [m.to_payload() for m in history]},
            connection_id,
        )
        await self.broadcaster.to_group(
            "notification",
            self._notification(NotificationType.JOIN_ROOM, username, room),
            room,
        )
        logger.info(f"[Chat] {username} joined room {room} ({len(history)} messages replayed)")
        return {"success": True, "room": room}

    async def leave_room(self, connection_id: str, data: Any = None) -> dict:
        room = self._room(_as_dict(data))
        self.registry.set_room(connection_id, None)
        username = self.registry.username_for(connection_id) or UNKNOWN

        await self.broadcaster.leave(connection_id, room)
        await self.broadcaster.to_group(
            "notification",
            self._notification(NotificationType.LEAVE_ROOM, username, room),
            room,
        )
        logger.info(f"[Chat] {username} left room {room}")
        return {"success": True}

    # =========================================================================
    # Messages
    # =========================================================================

    async def message(self, connection_id: str, data: Any = None) -> dict:
        """Store a room message and broadcast it to the room."""
        payload = _as_dict(data)
        room = self._room(payload)
        message = ChatMessage(
            id=self.store.next_id(connection_id),
            room=room,
            sender=self.registry.username_for(connection_id) or ANONYMOUS,
            text=_as_text(payload.get("text")),
        )
        self.store.add(room, message)

        logger.debug(f"[Chat] Message {message.id} from {message.sender} in {room}")
        await self.broadcaster.to_group("new_message", message.to_payload(), room)
        return {"success": True, "id": message.id}

    async def private_message(self, connection_id: str, data: Any = None) -> dict:
        """Store a direct message and deliver it to sender and recipient."""
        payload = _as_dict(data)
        sender = self.registry.username_for(connection_id) or ANONYMOUS
        recipient = _as_text(payload.get("to"))
        message = ChatMessage(
            id=self.store.next_id(connection_id, direct=True),
            room=direct_room_key(sender, recipient),
            sender=sender,
            to=recipient,
            text=_as_text(payload.get("text")),
        )
        self.store.add(message.room, message)
        recipient_connection = self.registry.lookup_by_username(recipient)

        event = message.to_payload()
        await self.broadcaster.to_one("private_message", event, connection_id)
        if (
            recipient_connection is not None
            and recipient_connection != connection_id
            and self.broadcaster.is_connected(recipient_connection)
        ):
            await self.broadcaster.to_one("private_message", event, recipient_connection)
        else:
            logger.debug(f"[Chat] {recipient!r} is offline; direct message {message.id} stored only")
        return {"success": True, "id": message.id}

    async def typing(self, connection_id: str, data: Any = None) -> None:
        """Relay a typing indicator to the room, excluding the typist."""
        payload = _as_dict(data)
        room = self._room(payload)
        await self.broadcaster.to_group(
            "user_typing",
            {
                "room": room,
                "username": self.registry.username_for(connection_id) or ANONYMOUS,
                "typing": bool(payload.get("typing")),
            },
            room,
            skip=connection_id,
        )

    async def reaction(self, connection_id: str, data: Any = None) -> dict:
        payload = _as_dict(data)
        room = self._room(payload)
        message_id = _as_text(payload.get("messageId"))
        try:
            reactions = self.store.attach_reaction(
                room, message_id, _as_text(payload.get("reaction"))
            )
        except ChatError as e:
            logger.info(f"[Chat] Reaction from {connection_id} rejected: {e}")
            return {"success": False, "error": e.code}

        await self.broadcaster.to_group(
            "message_reaction",
            {"room": room, "messageId": message_id, "reactions": reactions},
            room,
        )
        return {"success": True}

    async def read_messages(self, connection_id: str, data: Any = None) -> dict:
        """Mark messages read by the caller and echo the submitted ids to the room."""
        payload = _as_dict(data)
        room = self._room(payload)
        message_ids = _as_id_list(payload.get("messageIds"))
        username = self.registry.username_for(connection_id)
        if username:
            for message_id in message_ids:
                if message_id is not None:
                    self.store.mark_read(room, str(message_id), username)

        await self.broadcaster.to_group(
            "read_receipts", {"room": room, "messageIds": message_ids}, room
        )
        return {"success": True}
