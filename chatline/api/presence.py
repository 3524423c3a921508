from fastapi import APIRouter, Depends

from chatline.api.dependencies import get_hub
from chatline.realtime.hub import ChatHub

router = APIRouter(prefix="/presence", tags=["Presence"])


@router.get("/online")
async def get_online_users(hub: ChatHub = Depends(get_hub)):
    """
    현재 접속 중인 사용자 목록을 조회합니다.

    Returns:
        dict: 온라인 username 목록, 사용자 수, 전체 연결 수
    """
    users = hub.online_users()
    return {
        "users": users,
        "count": len(users),
        "connections": hub.connection_count
    }
