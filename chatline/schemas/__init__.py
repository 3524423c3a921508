from .chat import (
    ChatType,
    ChatRef,
    ChatMessage,
    IdentifyEvent,
    JoinChatEvent,
    SendMessageEvent,
    TypingEvent,
)

__all__ = [
    "ChatType",
    "ChatRef",
    "ChatMessage",
    "IdentifyEvent",
    "JoinChatEvent",
    "SendMessageEvent",
    "TypingEvent",
]
