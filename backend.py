from typing import Dict, Iterator, NamedTuple, Optional

from constants import HISTORY_LIMIT
from logging_config import get_logger
from room import Room

logger = get_logger(__name__)


def normalize_room_id(room_id: str) -> str:
    """Room codes are typed by humans; ``abc1`` and `` ABC1`` are the same room."""
    return room_id.strip().upper()


class RoomSummary(NamedTuple):
    room_id: str
    participant_count: int
    history_length: int
    created_at: int


class RoomRegistry:
    """
    Single source of truth mapping room ids to live rooms.

    None of the methods await, so each one runs to completion on the event
    loop before any other task can observe the mapping.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT):
        self.history_limit = history_limit
        self._rooms: Dict[str, Room] = {}
        logger.info(f"Initializing RoomRegistry with history limit {history_limit}")

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return normalize_room_id(room_id) in self._rooms

    def get_or_create(self, room_id: str) -> Room:
        key = normalize_room_id(room_id)
        room = self._rooms.get(key)
        if room is None:
            room = Room(key, history_limit=self.history_limit)
            self._rooms[key] = room
            logger.info(f"Room {key} created")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        room = self._rooms.get(normalize_room_id(room_id))
        if room is None:
            logger.debug(f"Room {room_id} not found")
        return room

    def remove(self, room_id: str) -> bool:
        """Drop an empty room. Rooms that still have participants are kept."""
        key = normalize_room_id(room_id)
        room = self._rooms.get(key)
        if room is None:
            logger.debug(f"Remove skipped: room {key} not found")
            return False
        if not room.is_empty:
            logger.warning(f"Refusing to delete room {key}: {room.participant_count} participants still connected")
            return False
        del self._rooms[key]
        room.closed = True
        logger.info(f"Room {key} deleted")
        return True

    def list_all(self) -> Iterator[RoomSummary]:
        """Yield a summary of every room as of the call.

        The room list is copied up front, so rooms created or deleted while
        the caller is consuming the iterator do not show up or disappear.
        """
        snapshot = [
            RoomSummary(room_id, room.participant_count, len(room.history), room.created_at)
            for room_id, room in list(self._rooms.items())
        ]
        return iter(snapshot)
