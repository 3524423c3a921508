from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from chatline.database.mysql import Base


class GroupRoomMember(Base):
    __tablename__ = "group_room_members"
    __table_args__ = (
        UniqueConstraint("user_id", "group_room_id", name="uq_group_room_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    group_room_id = Column(Integer, ForeignKey("group_chat_rooms.id"), nullable=False, index=True)
    is_creator = Column(Boolean, default=False)
    joined_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="group_memberships")
    group_room = relationship("GroupChatRoom", back_populates="members")

    def __repr__(self):
        return f"<GroupRoomMember(user_id={self.user_id}, group_room_id={self.group_room_id}, is_creator={self.is_creator})>"
