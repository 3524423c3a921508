"""
계정/세션 디렉터리

연결을 인증된 username 으로 변환하고, 사용자와 그룹 멤버십을 조회합니다.
실시간 계층은 이 인터페이스를 통해 읽기만 하며 계정 데이터를 변경하지 않습니다.
"""

from abc import ABC, abstractmethod
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatline.core.logging import get_logger, log_database_operation
from chatline.database.mysql import AsyncSessionLocal
from chatline.models.group_room_members import GroupRoomMember
from chatline.models.users import User
from chatline.realtime.connection import Connection
from chatline.utils.auth import decode_access_token

logger = get_logger(__name__)


class AccountDirectory(ABC):
    """계정/세션 조회 인터페이스"""

    @abstractmethod
    async def resolve_session(self, connection: Connection) -> Optional[str]:
        """연결의 세션을 username 으로 변환합니다. 인증되지 않았으면 None."""

    @abstractmethod
    async def group_member_usernames(self, group_id: str) -> Set[str]:
        """그룹 멤버들의 username 집합"""

    async def is_group_member(self, group_id: str, username: str) -> bool:
        return username in await self.group_member_usernames(group_id)


class SqlAccountDirectory(AccountDirectory):
    """MySQL(SQLAlchemy) 기반 계정 디렉터리"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def resolve_session(self, connection: Connection) -> Optional[str]:
        """
        연결 시 전달된 JWT 액세스 토큰을 검증하고 username 을 반환합니다.

        토큰의 sub 에는 사용자 ID 가 들어 있습니다. 토큰이 없거나 잘못되었거나
        비활성 사용자인 경우 None 을 반환합니다.
        """
        if not connection.token:
            return None

        payload = decode_access_token(connection.token)
        if not payload:
            logger.warning(f"Invalid token provided for connection {connection.id}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            logger.warning(f"Token missing user ID (sub) for connection {connection.id}")
            return None

        try:
            user = await self.get_user_by_id(int(user_id))
        except (ValueError, SQLAlchemyError) as e:
            logger.error(f"Failed to resolve session for connection {connection.id}: {e}")
            return None

        if user is None or not user.is_active:
            return None
        return user.username

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        async with self.session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self.session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalar_one_or_none()

    async def group_member_usernames(self, group_id: str) -> Set[str]:
        try:
            group_room_id = int(group_id)
        except ValueError:
            return set()

        async with self.session_factory() as session:
            query = (
                select(User.username)
                .join(GroupRoomMember, GroupRoomMember.user_id == User.id)
                .where(GroupRoomMember.group_room_id == group_room_id)
            )
            result = await session.execute(query)
            usernames = set(result.scalars().all())

        log_database_operation(
            logger, "select", "group_room_members",
            affected_rows=len(usernames), group_room_id=group_room_id
        )
        return usernames

    async def is_group_member(self, group_id: str, username: str) -> bool:
        try:
            group_room_id = int(group_id)
        except ValueError:
            return False

        try:
            async with self.session_factory() as session:
                query = (
                    select(GroupRoomMember.id)
                    .join(User, GroupRoomMember.user_id == User.id)
                    .where(
                        GroupRoomMember.group_room_id == group_room_id,
                        User.username == username
                    )
                )
                result = await session.execute(query)
                return result.first() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error verifying group access for {username} in group {group_id}: {e}")
            return False
