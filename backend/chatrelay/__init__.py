"""Real-time chat relay: rooms, direct messages, typing, reactions and read receipts."""

__version__ = "0.1.0"
