"""Socket.IO event bindings for the chat protocol.

Wires each wire-level event name to the matching ``ChatSessionHandler``
coroutine. The coroutine's return value becomes the Socket.IO
acknowledgment when the client asked for one.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

import socketio

from .handler import ChatSessionHandler

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "InternalError"

EventCallable = Callable[[str, Any], Awaitable[Optional[dict]]]


def _guarded(event: str, fn: EventCallable) -> Callable[..., Awaitable[Optional[dict]]]:
    """Wrap a handler so one bad event cannot take the connection or server down."""

    async def on_event(sid: str, *args: Any) -> Optional[dict]:
        data = args[0] if args else None
        try:
            return await fn(sid, data)
        except Exception:
            logger.exception(f"[Events] Unhandled error in {event} from {sid}")
            return {"success": False, "error": INTERNAL_ERROR}

    on_event.__name__ = f"on_{event}"
    return on_event


def register_events(sio: socketio.AsyncServer, handler: ChatSessionHandler) -> None:
    """Attach the chat protocol to a Socket.IO server."""

    async def connect(sid: str, environ: dict, auth: Any = None) -> None:
        logger.info(f"[Events] Socket connected: {sid}")

    async def disconnect(sid: str, *args: Any) -> None:
        try:
            await handler.disconnect(sid)
        except Exception:
            logger.exception(f"[Events] Unhandled error during disconnect of {sid}")

    sio.on("connect", connect)
    sio.on("disconnect", disconnect)

    events = {
        "login": handler.login,
        "join_room": handler.join_room,
        "leave_room": handler.leave_room,
        "message": handler.message,
        "private_message": handler.private_message,
        "typing": handler.typing,
        "reaction": handler.reaction,
        "read_messages": handler.read_messages,
        "get_users": handler.get_users,
    }
    for event, fn in events.items():
        sio.on(event, _guarded(event, fn))
