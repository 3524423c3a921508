"""
메시지 라우터

수신한 메시지를 direct 채팅이면 상대방 연결로, group 채팅이면 방 전체로
실시간 전달한 뒤 백그라운드 태스크로 저장소에 기록합니다. 저장은 전달을
지연시키지 않으며, 실패하면 발신자에게만 경고를 보내고 재시도하지 않습니다.
"""

import asyncio
import logging
from typing import Optional, Set

from chatline.core.errors import ChatNotJoined, Unauthenticated
from chatline.realtime.connection import Connection
from chatline.realtime.presence import PresenceRegistry
from chatline.realtime.rooms import RoomManager
from chatline.schemas.chat import ChatMessage, SendMessageEvent
from chatline.services.message_store import MessageStore

logger = logging.getLogger(__name__)

PERSIST_FAILED = "message-delivery-persist-failed"


class MessageRouter:
    """메시지 전달 및 저장 순서를 관리합니다."""

    def __init__(self, presence: PresenceRegistry, rooms: RoomManager, store: MessageStore):
        self.presence = presence
        self.rooms = rooms
        self.store = store
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def route(self, connection: Connection, event: SendMessageEvent) -> ChatMessage:
        """
        메시지를 실시간으로 전달하고 저장을 예약합니다.

        Args:
            connection: 발신자 연결
            event: 검증된 send-message 이벤트

        Returns:
            전달된 메시지

        Raises:
            Unauthenticated: 발신자 연결이 identify 되지 않은 경우
            ChatNotJoined: 입장하지 않은 group 채팅으로 보낸 경우
        """
        sender = self.presence.username_of(connection)
        if sender is None:
            raise Unauthenticated()

        chat = event.chat
        if not chat.is_direct and self.rooms.current_room(connection) != chat:
            raise ChatNotJoined(details=chat.to_dict())

        message = ChatMessage(
            sender=sender,
            recipient=chat.chat_id if chat.is_direct else None,
            body=event.body,
            chat_type=chat.chat_type,
            chat_id=chat.chat_id,
            client_timestamp=event.client_timestamp,
        )
        payload = {"type": "message-delivered", **message.to_event()}

        if chat.is_direct:
            await self._deliver_direct(connection, chat.chat_id, payload)
        else:
            # 발신자도 방 멤버이므로 브로드캐스트에 포함됨
            delivered = await self.rooms.broadcast(chat.room_key, payload)
            logger.debug(f"Message from {sender} delivered to {delivered} connections in {chat.room_key}")

        self._schedule_persist(connection, message)
        return message

    async def _deliver_direct(self, connection: Connection, peer: str, payload: dict):
        target: Optional[Connection] = self.presence.lookup(peer)
        if target is not None and target is not connection:
            await target.send_json(payload)
        # direct 채팅에는 공유 방이 없으므로 발신자에게도 한 부 전송
        await connection.send_json(payload)

    def _schedule_persist(self, connection: Connection, message: ChatMessage):
        task = asyncio.create_task(self._persist(connection, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, connection: Connection, message: ChatMessage):
        try:
            await self.store.append(message)
        except Exception as e:
            logger.error(
                f"Failed to persist message from {message.sender} to {message.chat.room_key}: {e}",
                extra={"event_type": "persist_failed", "room_key": message.chat.room_key}
            )
            await connection.send(
                "persist-warning",
                error=PERSIST_FAILED,
                message="Message was delivered but could not be saved.",
                chat_type=message.chat_type.value,
                chat_id=message.chat_id,
            )

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """대기 중인 저장 작업을 기다립니다. 모두 끝나면 True."""
        if not self._pending:
            return True
        _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} message writes still pending after drain timeout")
        return not pending
