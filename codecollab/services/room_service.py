import threading
import logging
from typing import Callable, Dict, List, NewType, Set

logger = logging.getLogger(__name__)

# Socket.IO sid of a connected client
ConnectionId = NewType('ConnectionId', str)


class RoomBroadcaster:
    """In-memory rooms of connections, keyed by session id.

    ``emit`` is the transport primitive and is called as
    ``emit(event, payload, to=connection_id)`` once per recipient.
    """

    def __init__(self, emit: Callable):
        self._emit = emit
        self._rooms: Dict[str, Set[ConnectionId]] = {}
        self._memberships: Dict[ConnectionId, Set[str]] = {}
        self._lock = threading.Lock()

    def join(self, connection: ConnectionId, session_id: str) -> None:
        with self._lock:
            self._rooms.setdefault(session_id, set()).add(connection)
            self._memberships.setdefault(connection, set()).add(session_id)
            size = len(self._rooms[session_id])
        logger.info(f"Connection {connection} joined room {session_id} ({size} connected)")

    def leave(self, connection: ConnectionId, session_id: str) -> None:
        with self._lock:
            self._discard(connection, session_id)
        logger.info(f"Connection {connection} left room {session_id}")

    def leave_all(self, connection: ConnectionId) -> List[str]:
        with self._lock:
            session_ids = sorted(self._memberships.get(connection, ()))
            for session_id in session_ids:
                self._discard(connection, session_id)
        if session_ids:
            logger.info(f"Connection {connection} removed from rooms {session_ids}")
        return session_ids

    def _discard(self, connection, session_id):
        members = self._rooms.get(session_id)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[session_id]
        rooms = self._memberships.get(connection)
        if rooms is not None:
            rooms.discard(session_id)
            if not rooms:
                del self._memberships[connection]

    def members(self, session_id: str) -> Set[ConnectionId]:
        with self._lock:
            return set(self._rooms.get(session_id, ()))

    def rooms_of(self, connection: ConnectionId) -> Set[str]:
        with self._lock:
            return set(self._memberships.get(connection, ()))

    def active_rooms(self) -> Dict[str, int]:
        with self._lock:
            return {session_id: len(members) for session_id, members in self._rooms.items()}

    def broadcast_to_others(self, connection: ConnectionId, session_id: str, event: str, payload) -> None:
        for member in self.members(session_id):
            if member != connection:
                self.send(member, event, payload)

    def broadcast_to_all(self, session_id: str, event: str, payload) -> None:
        for member in self.members(session_id):
            self.send(member, event, payload)

    def send(self, connection: ConnectionId, event: str, payload) -> None:
        try:
            self._emit(event, payload, to=connection)
        except Exception as e:
            # one bad recipient must not stop delivery to the rest of the room
            logger.error(f"Failed to deliver {event} to {connection}: {e}")
