"""
실시간 채팅 허브

프로세스 수명 동안 접속 레지스트리, 방 관리자, 메시지 라우터, 히스토리 로더,
타이핑 릴레이를 소유하고 WebSocket 이벤트를 각 구성 요소로 전달합니다.

상태를 변경하는 단계(접속/방 갱신과 그 결과의 브로드캐스트)는 하나의
asyncio.Lock 으로 직렬화됩니다. 히스토리 조회와 메시지 저장은 잠금 밖에서
수행되어 다른 연결의 이벤트 처리를 막지 않습니다.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Set, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from chatline.core.config import settings
from chatline.core.errors import (
    ChatAccessDenied,
    ChatError,
    InvalidEvent,
    Unauthenticated,
    create_error_event,
    validation_errors_from_pydantic,
)
from chatline.core.logging import log_websocket_event, set_connection_context
from chatline.realtime.connection import Connection
from chatline.realtime.history import HistoryLoader
from chatline.realtime.presence import PresenceRegistry
from chatline.realtime.rooms import RoomManager
from chatline.realtime.router import MessageRouter
from chatline.realtime.typing_relay import TypingRelay
from chatline.schemas.chat import IdentifyEvent, JoinChatEvent, SendMessageEvent, TypingEvent
from chatline.services.account_directory import AccountDirectory
from chatline.services.message_store import MessageStore

logger = logging.getLogger(__name__)

EventModel = TypeVar("EventModel", bound=BaseModel)


class ChatHub:
    """WebSocket 이벤트 디스패처"""

    def __init__(
        self,
        directory: AccountDirectory,
        store: MessageStore,
        history_limit: int = settings.history_limit,
        history_filter: str = settings.history_filter,
    ):
        self.directory = directory
        self.store = store
        self.presence = PresenceRegistry()
        self.rooms = RoomManager()
        self.router = MessageRouter(self.presence, self.rooms, store)
        self.history = HistoryLoader(store, directory, limit=history_limit, filter_mode=history_filter)
        self.typing = TypingRelay(self.presence, self.rooms)

        # 살아 있는 모든 연결: {connection_id: connection}
        self._connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()
        # 취소와 무관하게 끝까지 실행되는 연결 정리 태스크
        self._cleanups: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Awaitable[None]]] = {
            "identify": self._handle_identify,
            "join-chat": self._handle_join_chat,
            "send-message": self._handle_send_message,
            "typing": self._handle_typing,
            "ping": self._handle_ping,
        }

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def online_users(self) -> List[str]:
        return sorted(self.presence.snapshot())

    # =========================================================================
    # 연결 수명 주기
    # =========================================================================

    async def connect(self, connection: Connection):
        """새 연결을 등록하고 전체 연결 수를 알립니다."""
        async with self._lock:
            self._connections[connection.id] = connection
            self.rooms.attach(connection)

            await connection.send(
                "connection_established",
                connection_id=connection.id,
                online_users=self.online_users(),
            )
            await self._broadcast_clients_total()

        log_websocket_event(logger, "connect", connection.id)

    async def disconnect(self, connection: Connection):
        """
        연결을 정리하고 접속 사용자 변화를 알립니다.

        정리 작업은 별도 태스크에서 실행되므로 호출한 수신 루프가 취소되어도
        상태 갱신과 두 브로드캐스트는 끝까지 수행됩니다.
        """
        task = asyncio.create_task(self._disconnect(connection))
        self._cleanups.add(task)
        task.add_done_callback(self._cleanups.discard)
        await asyncio.shield(task)

    async def _disconnect(self, connection: Connection):
        async with self._lock:
            if self._connections.pop(connection.id, None) is None:
                return
            connection.closed = True
            username = self.presence.username_of(connection)
            self.rooms.detach(connection)
            self.presence.forget(connection)

            await self._broadcast_online_users()
            await self._broadcast_clients_total()

        log_websocket_event(logger, "disconnect", connection.id, username)

    async def shutdown(self, timeout: float = settings.persist_drain_timeout):
        """진행 중인 연결 정리와 대기 중인 메시지 저장 작업을 기다립니다."""
        if self._cleanups:
            await asyncio.wait(set(self._cleanups), timeout=timeout)
        await self.router.drain(timeout=timeout)

    # =========================================================================
    # 이벤트 디스패치
    # =========================================================================

    async def dispatch(self, connection: Connection, data: Dict[str, Any]):
        """
        클라이언트 이벤트 하나를 처리합니다.

        처리 중 발생한 오류는 해당 연결에만 error 이벤트로 보고되며
        다른 연결이나 수신 루프에는 영향을 주지 않습니다.
        """
        event_type = data.get("type")
        handler = self._handlers.get(event_type)

        try:
            if handler is None:
                raise InvalidEvent(f"Unknown event type: {event_type}")
            await handler(connection, data)
        except ChatError as e:
            logger.warning(f"Rejected {event_type} from connection {connection.id}: {e.error_code} {e.message}")
            await connection.send_json(e.to_dict())
        except Exception as e:
            logger.exception(f"Error handling {event_type} from connection {connection.id}: {e}")
            await connection.send_json(create_error_event(
                "processing_error",
                "An error occurred while processing the event."
            ))

    async def _handle_identify(self, connection: Connection, data: Dict[str, Any]):
        event = self._parse(IdentifyEvent, data)

        username = await self.directory.resolve_session(connection)
        if username is None:
            raise Unauthenticated("Session could not be resolved")
        if event.username is not None and event.username != username:
            raise Unauthenticated("Username does not match the session")

        async with self._lock:
            if connection.closed:
                return
            self.presence.identify(connection, username)
            await self._broadcast_online_users()

        set_connection_context(connection.id, username)
        log_websocket_event(logger, "identify", connection.id, username)

    async def _handle_join_chat(self, connection: Connection, data: Dict[str, Any]):
        chat = self._parse(JoinChatEvent, data).chat
        username = self._require_username(connection)

        if not chat.is_direct and not await self.directory.is_group_member(chat.chat_id, username):
            raise ChatAccessDenied(details=chat.to_dict())

        async with self._lock:
            if connection.closed:
                return
            self.rooms.join(connection, chat)

        log_websocket_event(logger, "join", connection.id, username, room_key=chat.room_key)

        messages = await self.history.load(chat, username)
        await connection.send(
            "history",
            messages=[message.to_event() for message in messages],
            **chat.to_dict(),
        )

    async def _handle_send_message(self, connection: Connection, data: Dict[str, Any]):
        event = self._parse(SendMessageEvent, data)

        async with self._lock:
            await self.router.route(connection, event)

    async def _handle_typing(self, connection: Connection, data: Dict[str, Any]):
        chat = self._parse(TypingEvent, data).chat

        async with self._lock:
            await self.typing.relay(connection, chat)

    async def _handle_ping(self, connection: Connection, data: Dict[str, Any]):
        await connection.send("pong", timestamp=datetime.utcnow().isoformat())

    # =========================================================================
    # 헬퍼
    # =========================================================================

    def _require_username(self, connection: Connection) -> str:
        username = self.presence.username_of(connection)
        if username is None:
            raise Unauthenticated()
        return username

    @staticmethod
    def _parse(model: Type[EventModel], data: Dict[str, Any]) -> EventModel:
        payload = {key: value for key, value in data.items() if key != "type"}
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            raise InvalidEvent(
                "Event validation failed",
                validation_errors=validation_errors_from_pydantic(e.errors())
            ) from e

    async def _broadcast_all(self, data: dict):
        for connection in list(self._connections.values()):
            await connection.send_json(data)

    async def _broadcast_online_users(self):
        await self._broadcast_all({"type": "online-users-changed", "users": self.online_users()})

    async def _broadcast_clients_total(self):
        await self._broadcast_all({"type": "clients-total", "count": self.connection_count})
