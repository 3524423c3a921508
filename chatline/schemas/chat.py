from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


class ChatType(str, Enum):
    """채팅 타입"""
    DIRECT = "direct"
    GROUP = "group"


def normalize_chat_target(data: Any) -> Any:
    """
    chat_id 를 정규화합니다.

    정수 ID 는 문자열로 바꾸고, group ID 는 "07", " 7" 처럼 표기만 다른 값이
    같은 방 키를 갖도록 정수 표기("7")로 맞춥니다.
    """
    if not isinstance(data, dict) or "chat_id" not in data:
        return data

    chat_id = data["chat_id"]
    if isinstance(chat_id, bool):
        return data
    if isinstance(chat_id, int):
        chat_id = str(chat_id)

    if data.get("chat_type") == ChatType.GROUP and isinstance(chat_id, str):
        try:
            chat_id = str(int(chat_id))
        except ValueError:
            # 숫자가 아닌 group ID 는 그대로 두고 멤버십 확인에서 거부됨
            pass

    return {**data, "chat_id": chat_id}


class ChatRef(BaseModel):
    """채팅 식별자: direct 는 상대방 username, group 은 그룹 ID"""
    model_config = ConfigDict(frozen=True)

    chat_type: ChatType = Field(..., description="채팅 타입: direct or group")
    chat_id: str = Field(..., min_length=1, description="상대방 username 또는 그룹 ID")

    @model_validator(mode="before")
    @classmethod
    def _normalize_chat_id(cls, data: Any) -> Any:
        return normalize_chat_target(data)

    @property
    def room_key(self) -> str:
        return f"{self.chat_type.value}:{self.chat_id}"

    @property
    def is_direct(self) -> bool:
        return self.chat_type == ChatType.DIRECT

    def to_dict(self) -> Dict[str, str]:
        return {"chat_type": self.chat_type.value, "chat_id": self.chat_id}


class ChatMessage(BaseModel):
    """저장 및 전달되는 불변 메시지 레코드"""
    model_config = ConfigDict(frozen=True)

    sender: str = Field(..., min_length=1, description="발신자 username")
    recipient: Optional[str] = Field(None, description="direct 채팅의 수신자 username")
    body: str = Field(..., min_length=1, description="메시지 내용")
    chat_type: ChatType = Field(..., description="채팅 타입")
    chat_id: str = Field(..., min_length=1, description="채팅 ID")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="서버 생성 시각")
    client_timestamp: Optional[str] = Field(None, description="클라이언트가 보낸 시각")

    @property
    def chat(self) -> ChatRef:
        return ChatRef(chat_type=self.chat_type, chat_id=self.chat_id)

    def to_event(self) -> Dict[str, Any]:
        """클라이언트로 보내는 메시지 페이로드"""
        data = {
            "body": self.body,
            "sender": self.sender,
            "chat_type": self.chat_type.value,
            "chat_id": self.chat_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.client_timestamp is not None:
            data["client_timestamp"] = self.client_timestamp
        return data


# =============================================================================
# 클라이언트 → 서버 이벤트
# =============================================================================

class IdentifyEvent(BaseModel):
    """연결을 사용자에 바인딩"""
    username: Optional[str] = Field(None, description="세션의 username 과 일치해야 함")


class ChatTargetEvent(BaseModel):
    """채팅을 대상으로 하는 이벤트의 공통 필드"""
    chat_type: ChatType = Field(..., description="채팅 타입: direct or group")
    chat_id: str = Field(..., min_length=1, description="상대방 username 또는 그룹 ID")

    @model_validator(mode="before")
    @classmethod
    def _normalize_chat_id(cls, data: Any) -> Any:
        return normalize_chat_target(data)

    @property
    def chat(self) -> ChatRef:
        return ChatRef(chat_type=self.chat_type, chat_id=self.chat_id)


class JoinChatEvent(ChatTargetEvent):
    """채팅 입장"""


class TypingEvent(ChatTargetEvent):
    """타이핑 알림"""


class SendMessageEvent(ChatTargetEvent):
    """메시지 전송"""
    body: str = Field(..., description="메시지 내용")
    client_timestamp: Optional[str] = Field(None, description="클라이언트 전송 시각")

    @field_validator("body")
    @classmethod
    def _reject_blank_body(cls, value: str) -> str:
        # 공백만 있는 메시지는 거부하되 내용은 보낸 그대로 전달
        if not value.strip():
            raise ValueError("Message body must not be empty")
        return value

    @field_validator("client_timestamp", mode="before")
    @classmethod
    def _coerce_client_timestamp(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)
