"""Registry of logged-in chat sessions.

Maps live connection ids to usernames (and back) and remembers the room each
connection last joined. A username is bound to at most one connection: a
second login with the same name rebinds it to the newer connection and
leaves the older connection's entry in place (last login wins).
"""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import InvalidUsername

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """Binding between a live connection and an authenticated username."""
    username: str = Field(..., description="Username, unique while online")
    connectionId: str = Field(..., description="Transport connection id")
    currentRoom: Optional[str] = Field(default=None, description="Last joined room")


class SessionRegistry:
    """Connection id <-> username bookkeeping."""

    def __init__(self) -> None:
        # connection id -> Session
        self._sessions: Dict[str, Session] = {}

        # username -> connection id (latest login wins)
        self._by_username: Dict[str, str] = {}

    def register(self, connection_id: str, username: str) -> Session:
        """Bind a username to a connection.

        Args:
            connection_id: Transport-assigned connection id.
            username: Requested username; surrounding whitespace is stripped.

        Returns:
            The new Session.

        Raises:
            InvalidUsername: The username is empty after trimming.
        """
        username = (username or "").strip()
        if not username:
            raise InvalidUsername("Username required")

        previous = self._sessions.get(connection_id)
        if previous is not None and previous.username != username:
            self._release_username(previous.username, connection_id)

        stale_connection = self._by_username.get(username)
        if stale_connection is not None and stale_connection != connection_id:
            logger.info(
                f"[Sessions] {username} logged in again from {connection_id}; "
                f"previous connection {stale_connection} is orphaned"
            )

        session = Session(username=username, connectionId=connection_id)
        self._sessions[connection_id] = session
        self._by_username[username] = connection_id
        return session

    def set_room(self, connection_id: str, room: Optional[str]) -> None:
        """Record the connection's current room; unknown connections are ignored."""
        session = self._sessions.get(connection_id)
        if session is not None:
            session.currentRoom = room

    def lookup(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def lookup_by_username(self, username: str) -> Optional[str]:
        return self._by_username.get(username)

    def username_for(self, connection_id: str) -> Optional[str]:
        """Username bound to a connection, or None if it never logged in."""
        session = self._sessions.get(connection_id)
        return session.username if session else None

    def remove(self, connection_id: str) -> Optional[Session]:
        """Forget a connection.

        Returns:
            The removed Session, or None if the connection never logged in.
        """
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            self._release_username(session.username, connection_id)
        return session

    def list_online(self) -> List[dict]:
        """Snapshot of online users as ``[{"username": ...}]``."""
        return [{"username": username} for username in list(self._by_username)]

    def list_sessions(self) -> List[Session]:
        """Snapshot of the live session for every online username."""
        sessions = []
        for username, connection_id in list(self._by_username.items()):
            session = self._sessions.get(connection_id)
            if session is not None:
                sessions.append(session.model_copy())
        return sessions

    def count(self) -> int:
        """Number of online usernames."""
        return len(self._by_username)

    def clear(self) -> None:
        self._sessions.clear()
        self._by_username.clear()

    def _release_username(self, username: str, connection_id: str) -> None:
        # Only drop the mapping while it still points at this connection, so an
        # orphaned connection going away cannot log out the newer login.
        if self._by_username.get(username) == connection_id:
            del self._by_username[username]
