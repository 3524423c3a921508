from datetime import timedelta

import pytest

from chatline.realtime.connection import Connection
from chatline.services.account_directory import SqlAccountDirectory
from chatline.utils.auth import create_access_token, extract_bearer_token

from conftest import FakeWebSocket


def connection_with(token):
    return Connection(FakeWebSocket(), token=token)


class TestSessionResolution:
    """JWT 세션 → username 변환 테스트"""

    @pytest.mark.asyncio
    async def test_resolve_valid_token(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)
        token = create_access_token(data={"sub": str(test_users["alice"].id)})

        assert await directory.resolve_session(connection_with(token)) == "alice"

    @pytest.mark.asyncio
    async def test_resolve_without_token(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)

        assert await directory.resolve_session(connection_with(None)) is None

    @pytest.mark.asyncio
    async def test_resolve_invalid_token(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)

        assert await directory.resolve_session(connection_with("not-a-jwt")) is None

    @pytest.mark.asyncio
    async def test_resolve_expired_token(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)
        token = create_access_token(
            data={"sub": str(test_users["alice"].id)},
            expires_delta=timedelta(minutes=-5)
        )

        assert await directory.resolve_session(connection_with(token)) is None

    @pytest.mark.asyncio
    async def test_resolve_token_without_subject(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)
        token = create_access_token(data={"role": "guest"})

        assert await directory.resolve_session(connection_with(token)) is None

    @pytest.mark.asyncio
    async def test_resolve_unknown_or_inactive_user(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)
        unknown = create_access_token(data={"sub": "99999"})
        inactive = create_access_token(data={"sub": str(test_users["dave"].id)})

        assert await directory.resolve_session(connection_with(unknown)) is None
        assert await directory.resolve_session(connection_with(inactive)) is None


class TestUserLookup:
    """사용자 조회 테스트"""

    @pytest.mark.asyncio
    async def test_get_user_by_username_and_id(self, test_session_factory, test_users):
        directory = SqlAccountDirectory(test_session_factory)

        by_name = await directory.get_user_by_username("bob")
        by_id = await directory.get_user_by_id(test_users["bob"].id)

        assert by_name.id == test_users["bob"].id
        assert by_id.username == "bob"
        assert await directory.get_user_by_username("nobody") is None


class TestGroupMembership:
    """그룹 멤버십 조회 테스트"""

    @pytest.mark.asyncio
    async def test_group_member_usernames(self, test_session_factory, test_group):
        directory = SqlAccountDirectory(test_session_factory)

        assert await directory.group_member_usernames(str(test_group.id)) == {"alice", "bob"}
        assert await directory.group_member_usernames("99999") == set()
        assert await directory.group_member_usernames("not-a-number") == set()

    @pytest.mark.asyncio
    async def test_is_group_member(self, test_session_factory, test_group):
        directory = SqlAccountDirectory(test_session_factory)

        assert await directory.is_group_member(str(test_group.id), "alice") is True
        assert await directory.is_group_member(str(test_group.id), "carol") is False
        assert await directory.is_group_member("abc", "alice") is False


class TestBearerToken:
    """Authorization 헤더 파싱 테스트"""

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc.def") == "abc.def"
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token("Bearer ") is None
        assert extract_bearer_token(None) is None
