from chatline.realtime.connection import Connection
from chatline.realtime.presence import PresenceRegistry
from chatline.realtime.rooms import RoomManager
from chatline.schemas.chat import ChatRef


class TypingRelay:
    """타이핑 알림을 상대방 또는 방의 다른 멤버에게 전달합니다. 상태는 저장하지 않습니다."""

    def __init__(self, presence: PresenceRegistry, rooms: RoomManager):
        self.presence = presence
        self.rooms = rooms

    async def relay(self, connection: Connection, chat: ChatRef) -> int:
        """전달된 연결 수를 반환합니다. 대상이 없으면 0."""
        username = self.presence.username_of(connection)
        if username is None:
            return 0

        payload = {"type": "peer-typing", "username": username, **chat.to_dict()}

        if chat.is_direct:
            target = self.presence.lookup(chat.chat_id)
            if target is None or target is connection:
                return 0
            return 1 if await target.send_json(payload) else 0

        if self.rooms.current_room(connection) != chat:
            return 0
        return await self.rooms.broadcast(chat.room_key, payload, exclude=connection)
