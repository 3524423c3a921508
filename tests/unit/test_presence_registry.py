import random

from chatline.realtime.connection import Connection
from chatline.realtime.presence import PresenceRegistry

from conftest import FakeWebSocket


def new_connection() -> Connection:
    return Connection(FakeWebSocket())


class TestPresenceRegistry:
    """접속 사용자 레지스트리 테스트"""

    def test_initial_state_is_empty(self):
        registry = PresenceRegistry()
        assert registry.snapshot() == set()
        assert registry.lookup("alice") is None
        assert len(registry) == 0

    def test_identify_records_both_directions(self):
        registry = PresenceRegistry()
        connection = new_connection()

        online = registry.identify(connection, "alice")

        assert online == {"alice"}
        assert registry.lookup("alice") is connection
        assert registry.username_of(connection) == "alice"
        assert connection.username == "alice"
        assert registry.is_online("alice")

    def test_forget_removes_mapping(self):
        registry = PresenceRegistry()
        connection = new_connection()
        registry.identify(connection, "alice")

        assert registry.forget(connection) is True
        assert registry.lookup("alice") is None
        assert registry.username_of(connection) is None
        assert connection.username is None
        assert registry.snapshot() == set()

    def test_forget_unknown_connection_is_noop(self):
        registry = PresenceRegistry()
        registry.identify(new_connection(), "bob")

        assert registry.forget(new_connection()) is False
        assert registry.snapshot() == {"bob"}

    def test_reidentify_same_username_evicts_previous_connection(self):
        """같은 username 으로 다시 identify 하면 마지막 연결이 매핑을 가져감"""
        registry = PresenceRegistry()
        first, second = new_connection(), new_connection()

        registry.identify(first, "alice")
        registry.identify(second, "alice")

        assert registry.lookup("alice") is second
        assert registry.username_of(first) is None
        assert first.username is None

        # 밀려난 연결이 끊겨도 새 연결의 접속 상태는 유지
        assert registry.forget(first) is False
        assert registry.lookup("alice") is second
        assert registry.snapshot() == {"alice"}

    def test_connection_renaming_releases_old_username(self):
        registry = PresenceRegistry()
        connection = new_connection()

        registry.identify(connection, "alice")
        registry.identify(connection, "alicia")

        assert registry.lookup("alice") is None
        assert registry.lookup("alicia") is connection
        assert registry.snapshot() == {"alicia"}

    def test_identify_same_connection_twice_is_stable(self):
        registry = PresenceRegistry()
        connection = new_connection()

        registry.identify(connection, "alice")
        registry.identify(connection, "alice")

        assert registry.lookup("alice") is connection
        assert registry.snapshot() == {"alice"}

    def test_random_identify_forget_sequences_match_model(self):
        """임의의 identify/forget 시퀀스 후 snapshot 과 lookup 이 기대값과 일치"""
        rng = random.Random(20240611)
        names = ["alice", "bob", "carol", "dave"]

        for _ in range(50):
            registry = PresenceRegistry()
            connections = [new_connection() for _ in range(6)]
            # 기대 모델: username -> 마지막으로 identify 한 연결
            expected = {}

            for _ in range(40):
                connection = rng.choice(connections)
                if rng.random() < 0.6:
                    username = rng.choice(names)
                    for name, owner in list(expected.items()):
                        if owner is connection:
                            del expected[name]
                    expected[username] = connection
                    registry.identify(connection, username)
                else:
                    for name, owner in list(expected.items()):
                        if owner is connection:
                            del expected[name]
                    registry.forget(connection)

                assert registry.snapshot() == set(expected)
                for name in names:
                    assert registry.lookup(name) is expected.get(name)
