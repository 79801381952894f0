"""Tracks which users currently hold at least one live connection."""
from typing import TYPE_CHECKING, Dict, List, Optional, Set

if TYPE_CHECKING:
    from .realtime import Connection


class PresenceRegistry:
    """User id -> live connections.

    A user with no connections is absent from the map rather than stored with an
    empty set. The registry is only touched from the event loop, so a mutation and
    the reads that follow it within one handler never interleave with another
    connection's handler.
    """

    def __init__(self) -> None:
        self._connections: Dict[int, Set["Connection"]] = {}

    def mark_online(self, user_id: int, connection: "Connection") -> bool:
        """Register a connection; return True if the user was offline before."""
        was_online = user_id in self._connections
        self._connections.setdefault(user_id, set()).add(connection)
        return not was_online

    def mark_offline(self, user_id: int, connection: Optional["Connection"] = None) -> bool:
        """Drop one connection (or all of them); return True if the user is now offline."""
        conns = self._connections.get(user_id)
        if conns is None:
            return False
        if connection is None:
            conns.clear()
        else:
            conns.discard(connection)
        if conns:
            return False
        del self._connections[user_id]
        return True

    def is_online(self, user_id: int) -> bool:
        return user_id in self._connections

    def connections(self, user_id: int) -> List["Connection"]:
        return list(self._connections.get(user_id, ()))

    def all_connections(self) -> List["Connection"]:
        return [conn for conns in self._connections.values() for conn in conns]

    def online_users(self) -> List[int]:
        return sorted(self._connections)

    def clear(self) -> None:
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)
