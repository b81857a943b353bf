"""Read-only HTTP API over chat state.

Endpoints:
    GET /api/users            - Online users with their current room
    GET /api/messages/{room}  - Paginated room history (page 1 = newest)
    GET /api/health           - Liveness probe
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from .sessions import SessionRegistry
from .store import MessageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class OnlineUser(BaseModel):
    """Response item for the online user list."""
    username: str
    currentRoom: Optional[str] = None


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_store(request: Request) -> MessageStore:
    return request.app.state.store


@router.get("/users", response_model=List[OnlineUser])
async def list_users(
    registry: SessionRegistry = Depends(get_registry),
) -> List[OnlineUser]:
    """List online users.

    Returns:
        One entry per online username, bound to its latest connection.
    """
    return [
        OnlineUser(username=s.username, currentRoom=s.currentRoom)
        for s in registry.list_sessions()
    ]


@router.get("/messages/{room}")
async def get_messages(
    request: Request,
    room: str,
    page: int = Query(1, ge=1, description="Page number, 1 = most recent"),
    pageSize: Optional[int] = Query(None, ge=1, description="Messages per page"),
    store: MessageStore = Depends(get_store),
) -> dict:
    """Get one page of a room's history.

    Args:
        room: Room name (direct-message pair keys work too).
        page: Page number counted back from the newest message.
        pageSize: Messages per page (defaults to chat.history_page_size,
            capped by chat.max_page_size).

    Returns:
        JSON with room, page, pageSize and messages (oldest first).

    Example:
        GET /api/messages/global?page=2&pageSize=50
    """
    chat_settings = request.app.state.settings.chat
    if pageSize is None:
        pageSize = chat_settings.history_page_size
    max_page_size = chat_settings.max_page_size
    if pageSize > max_page_size:
        raise HTTPException(
            status_code=422,
            detail=f"pageSize must be at most {max_page_size}",
        )

    messages = store.list(room, page, pageSize)
    logger.debug(f"[API] History for {room}: page={page} size={pageSize} -> {len(messages)}")
    return {
        "room": room,
        "page": page,
        "pageSize": pageSize,
        "messages": [m.to_payload() for m in messages],
    }


@router.get("/health")
async def health(
    registry: SessionRegistry = Depends(get_registry),
    store: MessageStore = Depends(get_store),
) -> dict:
    """Health check endpoint.

    Returns:
        dict: Status plus online session and active room counts.
    """
    return {"status": "ok", "sessions": registry.count(), "rooms": len(store.rooms())}
