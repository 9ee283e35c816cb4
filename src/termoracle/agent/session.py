"""Process-wide session state."""

from __future__ import annotations

from termoracle.conversation.log import ConversationLog
from termoracle.images.pipeline import ImageIdCounter
from termoracle.llm.base import ChatProvider


class SessionState:
    """Everything that lives for the whole process.

    The conversation log and the image-id counter are the only mutable
    shared state. Both are touched from the single event-loop thread, so
    no locking is needed. The provider is chosen once at startup.
    """

    def __init__(
        self,
        log: ConversationLog,
        provider: ChatProvider,
        image_ids: ImageIdCounter | None = None,
    ) -> None:
        self.log = log
        self.provider = provider
        self.image_ids = image_ids or ImageIdCounter()
