import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict, Iterable, List, Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from chatline.core.errors import PersistenceError, StoreUnavailable
from chatline.database.mysql import Base
from chatline.models.users import User
from chatline.models.group_chat_rooms import GroupChatRoom
from chatline.models.group_room_members import GroupRoomMember
from chatline.realtime.connection import Connection
from chatline.realtime.hub import ChatHub
from chatline.schemas.chat import ChatMessage, ChatType
from chatline.services.account_directory import AccountDirectory
from chatline.services.message_store import InMemoryMessageStore


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# 가짜 협력 객체들
# =============================================================================

class FakeWebSocket:
    """send_json 호출을 기록하는 WebSocket 대역"""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail

    async def send_json(self, data: dict):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, event_type: str) -> List[dict]:
        return [data for data in self.sent if data["type"] == event_type]

    def clear(self):
        self.sent.clear()


class FakeDirectory(AccountDirectory):
    """토큰을 그대로 username 으로 취급하는 디렉터리"""

    def __init__(self, groups: Optional[Dict[str, Iterable[str]]] = None):
        self.groups = {group_id: set(members) for group_id, members in (groups or {}).items()}
        self.fail = False

    async def resolve_session(self, connection: Connection) -> Optional[str]:
        return connection.token or None

    async def group_member_usernames(self, group_id: str) -> Set[str]:
        if self.fail:
            raise ConnectionError("directory unavailable")
        return set(self.groups.get(group_id, ()))


class FailingMessageStore(InMemoryMessageStore):
    """항상 실패하는 저장소"""

    def __init__(self):
        super().__init__()
        self.append_calls = 0

    async def append(self, message: ChatMessage) -> None:
        self.append_calls += 1
        raise PersistenceError("mongo is down")

    async def query(self, senders, limit, chat_type=None, chat_id=None, participants=None, exclude_self=False):
        raise StoreUnavailable("mongo is down")


def make_message(sender: str, chat_id: str, body: str = "hello", chat_type: ChatType = ChatType.DIRECT, **kwargs) -> ChatMessage:
    recipient = chat_id if chat_type == ChatType.DIRECT else None
    return ChatMessage(sender=sender, recipient=recipient, body=body, chat_type=chat_type, chat_id=chat_id, **kwargs)


# =============================================================================
# 허브 관련 fixture
# =============================================================================

@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(groups={"7": {"alice", "bob", "carol"}})


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def hub(directory, store) -> ChatHub:
    return ChatHub(directory=directory, store=store)


@pytest.fixture
def connect(hub):
    """연결을 만들고 (선택적으로) identify 까지 수행하는 헬퍼"""

    async def _connect(username: Optional[str] = None, identify: bool = True, fail: bool = False) -> Connection:
        connection = Connection(FakeWebSocket(fail=fail), token=username)
        await hub.connect(connection)
        if username and identify:
            await hub.dispatch(connection, {"type": "identify"})
        connection.websocket.clear()
        return connection

    return _connect


# =============================================================================
# SQL 디렉터리 fixture
# =============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_users(test_session) -> Dict[str, User]:
    """테스트용 사용자들 (dave 는 비활성)"""
    users = {
        name: User(username=name, password_hash="x", is_active=(name != "dave"))
        for name in ("alice", "bob", "carol", "dave")
    }
    test_session.add_all(users.values())
    await test_session.commit()
    for user in users.values():
        await test_session.refresh(user)
    return users


@pytest_asyncio.fixture
async def test_group(test_session, test_users) -> GroupChatRoom:
    """alice 가 만든 alice, bob 그룹"""
    group = GroupChatRoom(name="study", created_by=test_users["alice"].id)
    test_session.add(group)
    await test_session.commit()
    await test_session.refresh(group)

    test_session.add_all([
        GroupRoomMember(user_id=test_users["alice"].id, group_room_id=group.id, is_creator=True),
        GroupRoomMember(user_id=test_users["bob"].id, group_room_id=group.id),
    ])
    await test_session.commit()
    return group
