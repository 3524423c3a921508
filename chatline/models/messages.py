from datetime import datetime
from typing import Optional
from beanie import Document
from pydantic import Field


class MessageDocument(Document):
    sender: str = Field(..., description="Username of the sender")
    recipient: Optional[str] = Field(None, description="Peer username for direct chats")
    body: str = Field(..., description="Message content")
    chat_type: str = Field(..., description="Type of chat: direct or group")
    chat_id: str = Field(..., description="Peer username (direct) or group id (group)")
    client_timestamp: Optional[str] = Field(None, description="Timestamp reported by the client")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "messages"
        indexes = [
            [("chat_type", 1), ("chat_id", 1), ("created_at", -1)],  # For chat history
            [("sender", 1), ("created_at", -1)],  # For sender-filtered history
        ]

    def __repr__(self):
        return f"<MessageDocument(id={self.id}, sender={self.sender}, chat_type={self.chat_type}, chat_id={self.chat_id})>"
