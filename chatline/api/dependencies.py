from starlette.requests import HTTPConnection

from chatline.realtime.hub import ChatHub


def get_hub(connection: HTTPConnection) -> ChatHub:
    """애플리케이션 수명 동안 유지되는 채팅 허브"""
    hub = getattr(connection.app.state, "hub", None)
    if hub is None:
        raise RuntimeError("Chat hub not initialized. Is the application lifespan running?")
    return hub
