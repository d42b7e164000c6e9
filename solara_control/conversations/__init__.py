"""Conversation history and the inbound message pipeline."""

from .models import NormalizedMessage, ProcessedReply, VisitorProfile
from .repository import (
    ConversationHistoryStore,
    InMemoryConversationHistoryStore,
    PostgresConversationHistoryStore,
)

__all__ = [
    "ConversationHistoryStore",
    "InMemoryConversationHistoryStore",
    "NormalizedMessage",
    "PostgresConversationHistoryStore",
    "ProcessedReply",
    "VisitorProfile",
]
