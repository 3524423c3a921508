import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from chatline.api.dependencies import get_hub
from chatline.core.errors import create_error_event
from chatline.core.logging import clear_connection_context, set_connection_context
from chatline.realtime.connection import Connection
from chatline.realtime.hub import ChatHub
from chatline.utils.auth import extract_bearer_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/chat")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    hub: ChatHub = Depends(get_hub),
):
    """
    채팅 WebSocket 연결 엔드포인트

    Args:
        websocket: WebSocket 연결 객체
        token: JWT 액세스 토큰 (Authorization 헤더가 없을 때 사용)
        hub: 채팅 허브
    """
    session_token = extract_bearer_token(websocket.headers.get("Authorization")) or token

    # 1. 연결 수락 및 등록
    await websocket.accept()
    connection = Connection(websocket, token=session_token)
    set_connection_context(connection.id)

    try:
        await hub.connect(connection)

        # 2. 메시지 수신 루프
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.warning(f"Invalid JSON from connection {connection.id}: {e}")
                await connection.send_json(create_error_event(
                    "invalid_json",
                    "JSON 형식이 올바르지 않습니다."
                ))
                continue

            if not isinstance(data, dict):
                await connection.send_json(create_error_event(
                    "invalid_event",
                    "이벤트는 JSON 객체여야 합니다."
                ))
                continue

            await hub.dispatch(connection, data)

    except WebSocketDisconnect:
        # 정상적인 연결 해제
        logger.info(f"WebSocket disconnected for connection {connection.id}")

    except Exception as e:
        logger.error(f"Unexpected error in WebSocket connection {connection.id}: {e}")

    finally:
        # 3. 연결 해제 처리 (수신 루프가 취소되어도 정리는 끝까지 진행됨)
        try:
            await hub.disconnect(connection)
        finally:
            clear_connection_context()
