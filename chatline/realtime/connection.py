import logging
import uuid
from typing import Any, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Connection:
    """하나의 WebSocket 세션에 대한 핸들"""

    def __init__(self, websocket: WebSocket, token: Optional[str] = None):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.token = token
        self.username: Optional[str] = None
        self.closed = False

    @property
    def reserved_room(self) -> str:
        """연결 전용 채널 키 (join 으로 제거되지 않음)"""
        return f"conn:{self.id}"

    async def send(self, event_type: str, **fields: Any) -> bool:
        """이벤트 하나를 JSON 으로 전송합니다. 실패해도 예외를 던지지 않습니다."""
        return await self.send_json({"type": event_type, **fields})

    async def send_json(self, data: dict) -> bool:
        if self.closed:
            return False
        try:
            await self.websocket.send_json(data)
            return True
        except Exception as e:
            logger.error(f"Failed to send {data.get('type')} to connection {self.id}: {e}")
            return False

    def __repr__(self):
        return f"<Connection(id={self.id}, username={self.username})>"
