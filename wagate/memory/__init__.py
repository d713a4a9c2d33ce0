"""Conversation memory."""

from .store import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ConversationKey,
    ConversationMemory,
    MemoryEntry,
)

__all__ = [
    "ROLE_ASSISTANT",
    "ROLE_USER",
    "ConversationKey",
    "ConversationMemory",
    "MemoryEntry",
]
