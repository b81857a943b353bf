"""In-memory message history for chat rooms.

Every room (including the synthetic rooms used for direct messages) owns a
bounded, append-only log. When a log grows past its capacity the oldest
messages are evicted first; there is no other way to delete a message.

Messages are immutable once stored, except for two side tables:
    - reactions: reaction key -> count (only ever incremented)
    - readBy: usernames that acknowledged the message (append-only, no duplicates)

Thread Safety:
    Designed for a single asyncio event loop. Callers mutate the store
    synchronously between awaits, so no locking is needed.
"""
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import MessageNotFound

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Messages kept per room before the oldest are evicted
DEFAULT_CAPACITY = 1000

# Messages per page when the caller does not ask for a size
DEFAULT_PAGE_SIZE = 50

# Separator used to build direct-message room keys and ids
PM_SEPARATOR = "::pm::"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T12:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def direct_room_key(first: str, second: str) -> str:
    """Room key for a direct conversation; independent of who sent first."""
    return PM_SEPARATOR.join(sorted([first, second]))


# =============================================================================
# Data Models
# =============================================================================


class ChatMessage(BaseModel):
    """A stored chat message.

    Serialised with wire names (``from``, ``readBy``) via ``to_payload()``.

    Attributes:
        id: Unique message identifier (connection id + emission time).
        room: Room the message belongs to (pair key for direct messages).
        sender: Username of the author, ``from`` on the wire.
        to: Recipient username, only set for direct messages.
        text: Message body.
        ts: ISO-8601 creation timestamp.
        reactions: Reaction key -> count.
        readBy: Usernames that have read the message, in acknowledgment order.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique message ID")
    room: str = Field(..., description="Room this message belongs to")
    sender: str = Field(..., alias="from", description="Username of the sender")
    to: Optional[str] = Field(default=None, description="Recipient (direct messages only)")
    text: str = Field(default="", description="Message text")
    ts: str = Field(default_factory=utc_timestamp, description="ISO-8601 creation time")
    reactions: Dict[str, int] = Field(default_factory=dict)
    readBy: List[str] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """JSON-ready dict using wire field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Message Store
# =============================================================================


class MessageStore:
    """Per-room bounded message logs.

    Args:
        capacity: Maximum number of messages retained per room.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        # room -> messages, oldest first
        self._logs: Dict[str, Deque[ChatMessage]] = {}

        # Last emission stamp handed out by next_id()
        self._last_stamp = 0

    def next_id(self, connection_id: str, direct: bool = False) -> str:
        """Message id derived from the emitting connection and the emission time.

        The nanosecond stamp is bumped when needed so this store never hands
        out the same id twice.
        """
        stamp = time.time_ns()
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        if direct:
            return f"{connection_id}{PM_SEPARATOR}{stamp}"
        return f"{connection_id}::{stamp}"

    def add(self, room: str, message: ChatMessage) -> ChatMessage:
        """Append a message to a room's log, evicting the oldest past capacity.

        Returns:
            The same message (for chaining).
        """
        log = self._logs.get(room)
        if log is None:
            log = deque(maxlen=self.capacity)
            self._logs[room] = log
        if len(log) == self.capacity:
            logger.debug(f"[Store] Evicting oldest message {log[0].id} from room {room}")
        log.append(message)
        return message

    def list(
        self, room: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> List[ChatMessage]:
        """Get one page of a room's history, oldest first.

        Page 1 holds the newest ``page_size`` messages, page 2 the
        ``page_size`` before those, and so on. Pages past the available
        history come back empty.

        Args:
            room: Room to read.
            page: 1-based page number counted back from the newest message.
            page_size: Messages per page.

        Returns:
            Messages in chronological order (possibly empty).
        """
        if page < 1 or page_size < 1:
            return []
        messages = list(self._logs.get(room, ()))
        total = len(messages)
        start = max(0, total - page * page_size)
        end = max(0, total - (page - 1) * page_size)
        return messages[start:end]

    def find(self, room: str, message_id: str) -> Optional[ChatMessage]:
        """Look up a message by id; None if it was never stored or was evicted."""
        for message in self._logs.get(room, ()):
            if message.id == message_id:
                return message
        return None

    def attach_reaction(self, room: str, message_id: str, reaction: str) -> Dict[str, int]:
        """Increment a reaction count on a message.

        Returns:
            A copy of the message's updated reaction counts.

        Raises:
            MessageNotFound: The id is not in the room's log.
        """
        message = self.find(room, message_id)
        if message is None:
            raise MessageNotFound(f"Message {message_id} not found in room {room}")
        message.reactions[reaction] = message.reactions.get(reaction, 0) + 1
        return dict(message.reactions)

    def mark_read(self, room: str, message_id: str, username: str) -> bool:
        """Record that ``username`` read a message. Idempotent.

        Returns:
            False if the message is absent, True otherwise.
        """
        message = self.find(room, message_id)
        if message is None:
            return False
        if username not in message.readBy:
            message.readBy.append(username)
        return True

    def count(self, room: str) -> int:
        """Number of messages currently retained for a room."""
        return len(self._logs.get(room, ()))

    def rooms(self) -> List[str]:
        """Names of all rooms with a non-empty log."""
        return [room for room, log in self._logs.items() if log]

    def clear(self) -> None:
        """Drop every room's history."""
        self._logs.clear()
