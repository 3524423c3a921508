import logging
from typing import List

from chatline.core.config import settings
from chatline.schemas.chat import ChatMessage, ChatRef, ChatType
from chatline.services.account_directory import AccountDirectory
from chatline.services.message_store import MessageStore

logger = logging.getLogger(__name__)

STRICT_FILTER = "strict"
SENDER_FILTER = "sender"


class HistoryLoader:
    """채팅 입장 시 최근 메시지를 조회합니다."""

    def __init__(
        self,
        store: MessageStore,
        directory: AccountDirectory,
        limit: int = settings.history_limit,
        filter_mode: str = settings.history_filter,
    ):
        if filter_mode not in (STRICT_FILTER, SENDER_FILTER):
            raise ValueError(f"Unknown history filter: {filter_mode}")
        self.store = store
        self.directory = directory
        self.limit = limit
        self.filter_mode = filter_mode

    async def load(self, chat: ChatRef, requester: str) -> List[ChatMessage]:
        """
        chat 의 최근 메시지를 오래된 순으로 최대 limit 개 반환합니다.

        저장소나 디렉터리 오류는 기록만 하고 빈 목록을 반환합니다.
        """
        if self.limit <= 0:
            return []

        try:
            if chat.is_direct:
                messages = await self._load_direct(chat, requester)
            else:
                messages = await self._load_group(chat)
        except Exception as e:
            logger.error(f"Failed to load history for {chat.room_key} requested by {requester}: {e}")
            return []

        return messages[-self.limit:]

    async def _load_direct(self, chat: ChatRef, requester: str) -> List[ChatMessage]:
        participants = {requester, chat.chat_id}
        if self.filter_mode == SENDER_FILTER:
            return await self.store.query(participants, self.limit)

        # 자기 자신에게 보낸 메시지는 두 사람의 대화에서 제외
        return await self.store.query(
            participants,
            self.limit,
            chat_type=ChatType.DIRECT,
            participants=participants,
            exclude_self=len(participants) > 1,
        )

    async def _load_group(self, chat: ChatRef) -> List[ChatMessage]:
        members = await self.directory.group_member_usernames(chat.chat_id)
        if not members:
            return []

        if self.filter_mode == SENDER_FILTER:
            return await self.store.query(members, self.limit)

        return await self.store.query(
            members,
            self.limit,
            chat_type=ChatType.GROUP,
            chat_id=chat.chat_id,
        )
