"""Chat Relay Application.

This is the main entry point for the chat relay service: a real-time chat
server where clients log in with a username, join rooms, and exchange room
and direct messages with typing indicators, reactions and read receipts.

Modules:
    - chat.handler: Chat protocol state machine
    - chat.events: Socket.IO event bindings
    - chat.router: Read-only HTTP API
    - config: YAML settings

Run with ``python -m chatrelay`` or ``uvicorn chatrelay.main:asgi_app``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI

from chatrelay import __version__
from chatrelay.chat.broadcaster import SocketIOBroadcaster
from chatrelay.chat.events import register_events
from chatrelay.chat.handler import ChatSessionHandler
from chatrelay.chat.router import router as chat_router
from chatrelay.chat.sessions import SessionRegistry
from chatrelay.chat.store import MessageStore
from chatrelay.config import AppSettings, get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# engineio/socketio log every packet; uvicorn.access logs every HTTP request.
for _noisy in (
    "engineio",
    "engineio.server",
    "socketio",
    "socketio.server",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    settings: AppSettings = app.state.settings

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in chatrelay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, settings.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", settings.logging.level.upper())

    logger.info(
        f"Chat relay ready on http://{settings.server.host}:{settings.server.port} "
        f"(default room '{settings.chat.default_room}', "
        f"history capacity {settings.chat.history_capacity} per room)"
    )

    yield  # Application runs here

    # Shutdown: in-memory state is discarded
    app.state.registry.clear()
    app.state.store.clear()
    logger.info("Application shutdown complete")


def _cors_origins(settings: AppSettings):
    origins = settings.server.allowed_origins
    return "*" if "*" in origins else origins


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Build the FastAPI app with fresh chat state and its Socket.IO server.

    The session registry, message store, Socket.IO server and chat handler
    are attached to ``app.state``.
    """
    settings = settings or get_config()

    app = FastAPI(
        title="Chat Relay API",
        description="Real-time chat relay with rooms and direct messages",
        version=__version__,
        lifespan=lifespan,
    )

    registry = SessionRegistry()
    store = MessageStore(capacity=settings.chat.history_capacity)
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=_cors_origins(settings),
    )
    handler = ChatSessionHandler(
        registry=registry,
        store=store,
        broadcaster=SocketIOBroadcaster(sio),
        default_room=settings.chat.default_room,
        history_page_size=settings.chat.history_page_size,
    )
    register_events(sio, handler)

    app.state.settings = settings
    app.state.registry = registry
    app.state.store = store
    app.state.sio = sio
    app.state.handler = handler

    app.include_router(chat_router)

    @app.get("/")
    async def root() -> dict:
        """Service banner.

        Returns:
            dict: Service name and status.
        """
        return {"service": "chatrelay", "status": "running"}

    return app


def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    """Mount the app's Socket.IO server in front of the FastAPI routes."""
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


# Create the application and its Socket.IO front end
app = create_app()
asgi_app = create_asgi_app(app)
