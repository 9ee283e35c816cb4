"""Conversation log for termoracle.

Public API:
    ConversationLog -- Append-only, persisted turn store
    PersistenceError -- Raised when a persisted log cannot be replayed
"""

from termoracle.conversation.log import ConversationLog, PersistenceError

__all__ = ["ConversationLog", "PersistenceError"]
