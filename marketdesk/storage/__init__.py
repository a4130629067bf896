"""Storage modules for persistence."""

from marketdesk.storage.history import (
    ChatHistory,
    ChatMessage,
    ChatSession,
    get_history,
    reset_history,
)

__all__ = [
    "ChatHistory",
    "ChatMessage",
    "ChatSession",
    "get_history",
    "reset_history",
]
