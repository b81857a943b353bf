"""Chat rooms: sessions, message history, fan-out and the Socket.IO protocol."""
from .broadcaster import Broadcaster, SocketIOBroadcaster
from .errors import ChatError, InvalidUsername, MessageNotFound
from .handler import ChatSessionHandler
from .sessions import Session, SessionRegistry
from .store import ChatMessage, MessageStore

__all__ = [
    "Broadcaster",
    "ChatError",
    "ChatMessage",
    "ChatSessionHandler",
    "InvalidUsername",
    "MessageNotFound",
    "MessageStore",
    "Session",
    "SessionRegistry",
    "SocketIOBroadcaster",
]
