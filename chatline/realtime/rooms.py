import logging
from typing import Dict, List, Optional, Set

from chatline.realtime.connection import Connection
from chatline.schemas.chat import ChatRef

logger = logging.getLogger(__name__)


class RoomManager:
    """채팅방(room key)별 연결 그룹을 관리합니다."""

    def __init__(self):
        # 방별 연결 그룹: {room_key: {connection_id: connection}}
        self._rooms: Dict[str, Dict[str, Connection]] = {}
        # 연결별 참여 중인 방: {connection_id: {room_key}}
        self._memberships: Dict[str, Set[str]] = {}
        # 연결별 현재 채팅: {connection_id: ChatRef}
        self._current: Dict[str, ChatRef] = {}

    def attach(self, connection: Connection):
        """새 연결의 전용 채널을 등록합니다."""
        self._add(connection, connection.reserved_room)

    def detach(self, connection: Connection):
        """연결이 참여한 모든 방에서 제거합니다."""
        for room_key in list(self._memberships.get(connection.id, ())):
            self._remove(connection, room_key)
        self._memberships.pop(connection.id, None)
        self._current.pop(connection.id, None)

    def join(self, connection: Connection, chat: ChatRef):
        """
        연결을 chat 의 방으로 이동합니다.

        전용 채널을 제외한 기존 방에서는 모두 나갑니다. 같은 chat 에 다시
        join 해도 멤버십은 하나만 남습니다.
        """
        for room_key in list(self._memberships.get(connection.id, ())):
            if room_key != connection.reserved_room and room_key != chat.room_key:
                self._remove(connection, room_key)

        self._add(connection, chat.room_key)
        self._current[connection.id] = chat
        logger.debug(f"Connection {connection.id} joined room {chat.room_key}")

    def current_room(self, connection: Connection) -> Optional[ChatRef]:
        return self._current.get(connection.id)

    def rooms_of(self, connection: Connection) -> Set[str]:
        return set(self._memberships.get(connection.id, ()))

    def members(self, room_key: str) -> List[Connection]:
        return list(self._rooms.get(room_key, {}).values())

    def member_count(self, room_key: str) -> int:
        return len(self._rooms.get(room_key, {}))

    async def broadcast(self, room_key: str, data: dict, exclude: Optional[Connection] = None) -> int:
        """방의 모든 연결에 이벤트를 브로드캐스트합니다. 전송 성공 수를 반환합니다."""
        delivered = 0
        for connection in self.members(room_key):
            if exclude is not None and connection is exclude:
                continue
            if await connection.send_json(data):
                delivered += 1
        return delivered

    def _add(self, connection: Connection, room_key: str):
        self._rooms.setdefault(room_key, {})[connection.id] = connection
        self._memberships.setdefault(connection.id, set()).add(room_key)

    def _remove(self, connection: Connection, room_key: str):
        room = self._rooms.get(room_key)
        if room is not None:
            room.pop(connection.id, None)
            # 방에 연결이 없으면 방 자체를 제거
            if not room:
                del self._rooms[room_key]
        memberships = self._memberships.get(connection.id)
        if memberships is not None:
            memberships.discard(room_key)
