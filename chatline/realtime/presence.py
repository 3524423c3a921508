"""
접속 사용자 레지스트리

연결과 username 사이의 양방향 매핑을 관리합니다. 하나의 username 에는 최대
하나의 연결만 매핑되며, 같은 username 으로 다시 identify 하면 마지막 연결이
매핑을 가져갑니다.
"""

import logging
from typing import Dict, Optional, Set

from chatline.realtime.connection import Connection

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """온라인 사용자 레지스트리"""

    def __init__(self):
        # {connection_id: username}
        self._usernames: Dict[str, str] = {}
        # {username: connection}
        self._connections: Dict[str, Connection] = {}

    def identify(self, connection: Connection, username: str) -> Set[str]:
        """
        연결을 username 에 바인딩합니다.

        이미 다른 연결에 매핑된 username 이면 이전 연결의 매핑은 조용히
        제거됩니다 (이전 연결에는 알리지 않음).

        Returns:
            갱신된 온라인 사용자 집합
        """
        previous_name = self._usernames.get(connection.id)
        if previous_name is not None and previous_name != username:
            self._connections.pop(previous_name, None)

        evicted = self._connections.get(username)
        if evicted is not None and evicted is not connection:
            self._usernames.pop(evicted.id, None)
            evicted.username = None
            logger.info(f"User {username} re-identified, evicting connection {evicted.id}")

        self._usernames[connection.id] = username
        self._connections[username] = connection
        connection.username = username
        return self.snapshot()

    def forget(self, connection: Connection) -> bool:
        """연결의 매핑을 제거합니다. 매핑이 없으면 아무 일도 하지 않습니다."""
        username = self._usernames.pop(connection.id, None)
        if username is None:
            return False

        if self._connections.get(username) is connection:
            del self._connections[username]
        connection.username = None
        return True

    def lookup(self, username: str) -> Optional[Connection]:
        return self._connections.get(username)

    def username_of(self, connection: Connection) -> Optional[str]:
        return self._usernames.get(connection.id)

    def is_online(self, username: str) -> bool:
        return username in self._connections

    def snapshot(self) -> Set[str]:
        return set(self._connections)

    def __len__(self) -> int:
        return len(self._connections)
