from typing import Optional, Dict, Any, List
from pydantic import BaseModel


class ErrorEvent(BaseModel):
    """WebSocket 표준 에러 이벤트 모델"""
    type: str = "error"
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class ChatError(Exception):
    """실시간 채팅 처리 중 발생하는 예외의 기본 클래스"""
    error_code = "chat_error"
    default_message = "Chat operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """예외를 에러 이벤트 딕셔너리로 변환"""
        return ErrorEvent(
            error_code=self.error_code,
            message=self.message,
            details=self.details
        ).model_dump()


class Unauthenticated(ChatError):
    """연결에 인증된 사용자가 없음"""
    error_code = "unauthenticated"
    default_message = "Connection is not identified"


class InvalidEvent(ChatError):
    """이벤트 페이로드 검증 실패"""
    error_code = "invalid_event"
    default_message = "Invalid event payload"

    def __init__(
        self,
        message: Optional[str] = None,
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        if self.validation_errors:
            details = details or {}
            details["validation_errors"] = [error.model_dump() for error in self.validation_errors]
        super().__init__(message, details)


class ChatNotJoined(ChatError):
    """참여하지 않은 채팅에 대한 이벤트"""
    error_code = "chat_not_joined"
    default_message = "Join the chat before sending to it"


class ChatAccessDenied(ChatError):
    """그룹 멤버가 아닌 사용자의 접근"""
    error_code = "chat_access_denied"
    default_message = "Access to this chat is denied"


class PersistenceError(ChatError):
    """메시지 저장 실패"""
    error_code = "persistence_failure"
    default_message = "Failed to persist message"


class StoreUnavailable(ChatError):
    """메시지 저장소 조회 불가"""
    error_code = "store_unavailable"
    default_message = "Message store is unavailable"


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_event(
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """표준 에러 이벤트 생성"""
    return ErrorEvent(error_code=error_code, message=message, details=details).model_dump()


def validation_errors_from_pydantic(errors: List[Dict[str, Any]]) -> List[ValidationError]:
    """Pydantic 에러 목록을 ValidationError 목록으로 변환"""
    return [
        ValidationError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input")
        )
        for error in errors
    ]
