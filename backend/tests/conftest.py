"""Shared test fixtures and configuration for backend tests."""
from typing import Any, List, Optional, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from chatrelay.chat.broadcaster import Broadcaster
from chatrelay.chat.handler import ChatSessionHandler
from chatrelay.chat.sessions import SessionRegistry
from chatrelay.chat.store import MessageStore
from chatrelay.config import AppSettings
from chatrelay.main import create_app


class RecordingBroadcaster(Broadcaster):
    """In-memory broadcaster that records every delivery per connection.

    Group membership is tracked so tests can assert who actually received
    a room event.
    """

    def __init__(self) -> None:
        self.connected: Set[str] = set()
        self.groups: dict = {}
        # (event, payload, target) in emission order; target is the room,
        # the connection id, or "*" for global events
        self.sent: List[Tuple[str, Any, str]] = []
        # connection id -> [(event, payload)]
        self.inbox: dict = {}

    def connect(self, connection_id: str) -> None:
        self.connected.add(connection_id)
        self.inbox.setdefault(connection_id, [])

    def drop(self, connection_id: str) -> None:
        self.connected.discard(connection_id)
        for members in self.groups.values():
            members.discard(connection_id)

    def _deliver(self, connection_id: str, event: str, payload: Any) -> None:
        if connection_id in self.connected:
            self.inbox[connection_id].append((event, payload))

    async def join(self, connection_id: str, room: str) -> None:
        self.groups.setdefault(room, set()).add(connection_id)

    async def leave(self, connection_id: str, room: str) -> None:
        self.groups.get(room, set()).discard(connection_id)

    async def to_group(
        self, event: str, payload: Any, room: str, skip: Optional[str] = None
    ) -> None:
        self.sent.append((event, payload, room))
        for member in sorted(self.groups.get(room, set())):
            if member != skip:
                self._deliver(member, event, payload)

    async def to_one(self, event: str, payload: Any, connection_id: str) -> None:
        self.sent.append((event, payload, connection_id))
        self._deliver(connection_id, event, payload)

    async def to_all(self, event: str, payload: Any) -> None:
        self.sent.append((event, payload, "*"))
        for member in sorted(self.connected):
            self._deliver(member, event, payload)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.connected

    def received(self, connection_id: str, event: str) -> List[Any]:
        """Payloads of ``event`` delivered to a connection."""
        return [p for e, p in self.inbox.get(connection_id, []) if e == event]

    def events(self, event: str) -> List[Tuple[Any, str]]:
        """(payload, target) of every emission of ``event``."""
        return [(p, t) for e, p, t in self.sent if e == event]


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def store():
    return MessageStore(capacity=1000)


@pytest.fixture
def handler(registry, store, broadcaster):
    return ChatSessionHandler(
        registry=registry,
        store=store,
        broadcaster=broadcaster,
        default_room="global",
        history_page_size=50,
    )


@pytest.fixture
def test_app():
    """Fresh FastAPI app with empty chat state and default settings."""
    return create_app(AppSettings())


@pytest.fixture
def api_client(test_app):
    """Provide a TestClient for a fresh app instance."""
    with TestClient(test_app) as client:
        yield client
