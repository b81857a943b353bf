"""Client-facing chat errors.

Each error carries a stable ``code`` that is sent back to the requesting
connection inside the acknowledgment payload (``{"success": False, "error": code}``).
"""


class ChatError(Exception):
    """Base class for errors reported to the requesting client."""

    code = "ChatError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)


class InvalidUsername(ChatError):
    """Login username was missing or blank after trimming."""

    code = "InvalidUsername"


class MessageNotFound(ChatError):
    """Message id is unknown in the room (never sent, or already evicted)."""

    code = "MessageNotFound"
