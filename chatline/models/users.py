from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from chatline.database.mysql import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Group chat rooms
    created_groups = relationship("GroupChatRoom", back_populates="creator")
    group_memberships = relationship("GroupRoomMember", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"
