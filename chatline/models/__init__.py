from .users import User
from .group_chat_rooms import GroupChatRoom
from .group_room_members import GroupRoomMember
from .messages import MessageDocument

__all__ = [
    "User",
    "GroupChatRoom",
    "GroupRoomMember",
    "MessageDocument",
]
