"""
메시지 저장소

실시간 계층이 전달 후 메시지를 기록하고, 채팅 입장 시 히스토리를 읽어 오는
추가 전용 저장소 인터페이스입니다. 구현체는 MongoDB(Beanie) 기반
MongoMessageStore 와 개발/테스트용 InMemoryMessageStore 입니다.
"""

import itertools
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from beanie.operators import In
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from chatline.core.errors import PersistenceError, StoreUnavailable
from chatline.core.logging import get_logger
from chatline.models.messages import MessageDocument
from chatline.schemas.chat import ChatMessage, ChatType

logger = get_logger(__name__)


class MessageStore(ABC):
    """ChatMessage 저장소 인터페이스"""

    @abstractmethod
    async def append(self, message: ChatMessage) -> None:
        """메시지 하나를 저장합니다. 실패하면 PersistenceError."""

    @abstractmethod
    async def query(
        self,
        senders: Iterable[str],
        limit: int,
        chat_type: Optional[ChatType] = None,
        chat_id: Optional[str] = None,
        participants: Optional[Iterable[str]] = None,
        exclude_self: bool = False,
    ) -> List[ChatMessage]:
        """
        senders 가 작성한 최근 메시지를 오래된 순으로 최대 limit 개 반환합니다.

        Args:
            senders: 작성자 username 목록
            limit: 최대 개수
            chat_type: 채팅 타입 필터
            chat_id: 채팅 ID 필터
            participants: 수신자(recipient)가 이 목록에 있는 메시지만
            exclude_self: 발신자와 수신자가 같은 메시지(자기 자신에게 보낸 메모) 제외

        Raises:
            StoreUnavailable: 저장소에 접근할 수 없는 경우
        """


class InMemoryMessageStore(MessageStore):
    """프로세스 내부 저장소 (개발 및 테스트용)"""

    def __init__(self):
        self._rows: List[tuple] = []
        self._sequence = itertools.count()

    @property
    def messages(self) -> List[ChatMessage]:
        return [message for _, message in self._rows]

    async def append(self, message: ChatMessage) -> None:
        self._rows.append((next(self._sequence), message))

    async def query(
        self,
        senders: Iterable[str],
        limit: int,
        chat_type: Optional[ChatType] = None,
        chat_id: Optional[str] = None,
        participants: Optional[Iterable[str]] = None,
        exclude_self: bool = False,
    ) -> List[ChatMessage]:
        sender_set: Set[str] = set(senders)
        participant_set = set(participants) if participants is not None else None
        if not sender_set or limit <= 0:
            return []

        rows = [
            (sequence, message) for sequence, message in self._rows
            if message.sender in sender_set
            and (chat_type is None or message.chat_type == chat_type)
            and (chat_id is None or message.chat_id == chat_id)
            and (participant_set is None or message.recipient in participant_set)
            and not (exclude_self and message.sender == message.recipient)
        ]
        rows.sort(key=lambda row: (row[1].timestamp, row[0]))
        return [message for _, message in rows[-limit:]]


class MongoMessageStore(MessageStore):
    """messages 컬렉션 기반 MongoDB 저장소"""

    async def append(self, message: ChatMessage) -> None:
        document = MessageDocument(
            sender=message.sender,
            recipient=message.recipient,
            body=message.body,
            chat_type=message.chat_type.value,
            chat_id=message.chat_id,
            client_timestamp=message.client_timestamp,
            created_at=message.timestamp,
        )
        try:
            await document.insert()
        except PyMongoError as e:
            raise PersistenceError(f"Failed to insert message: {e}") from e

    async def query(
        self,
        senders: Iterable[str],
        limit: int,
        chat_type: Optional[ChatType] = None,
        chat_id: Optional[str] = None,
        participants: Optional[Iterable[str]] = None,
        exclude_self: bool = False,
    ) -> List[ChatMessage]:
        sender_list = sorted(set(senders))
        if not sender_list or limit <= 0:
            return []

        conditions = [In(MessageDocument.sender, sender_list)]
        if chat_type is not None:
            conditions.append(MessageDocument.chat_type == chat_type.value)
        if chat_id is not None:
            conditions.append(MessageDocument.chat_id == chat_id)
        if participants is not None:
            conditions.append(In(MessageDocument.recipient, sorted(set(participants))))
        if exclude_self:
            conditions.append({"$expr": {"$ne": ["$sender", "$recipient"]}})

        try:
            documents = await MessageDocument.find(*conditions).sort(
                [("created_at", DESCENDING), ("_id", DESCENDING)]
            ).limit(limit).to_list()
        except PyMongoError as e:
            raise StoreUnavailable(f"Failed to query messages: {e}") from e

        # 최신순으로 조회한 것을 역순으로 변경 (오래된 것부터)
        return [self._to_message(document) for document in reversed(documents)]

    @staticmethod
    def _to_message(document: MessageDocument) -> ChatMessage:
        return ChatMessage(
            sender=document.sender,
            recipient=document.recipient,
            body=document.body,
            chat_type=document.chat_type,
            chat_id=document.chat_id,
            timestamp=document.created_at,
            client_timestamp=document.client_timestamp,
        )
