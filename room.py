import asyncio
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel

from connection import Connection
from constants import HISTORY_LIMIT
from logging_config import get_logger
from schemas.messages import ChatEvent, GestureEvent, HistoryEntry, ParticipantInfo, timestamp_ms

logger = get_logger(__name__)


@dataclass
class Participant:
    """Binds a connection to a display identity within one room."""
    username: str
    user_id: str
    joined_at: int = field(default_factory=timestamp_ms)

    def info(self) -> ParticipantInfo:
        return ParticipantInfo(username=self.username, user_id=self.user_id)


class Room:
    """
    Membership and fan-out for one room.

    Callers hold ``lock`` around any read-modify-write of the participant
    table or history, and around the broadcasts that must stay ordered with
    it. ``closed`` is set by the registry once the room is no longer mapped;
    a closed room must not accept new participants.
    """

    def __init__(self, room_id: str, history_limit: int = HISTORY_LIMIT):
        self.room_id = room_id
        self.created_at = timestamp_ms()
        self.participants: Dict[Connection, Participant] = {}
        self.history: deque = deque(maxlen=history_limit)
        self.lock = asyncio.Lock()
        self.closed = False

    def __repr__(self) -> str:
        return f"Room({self.room_id}, participants={len(self.participants)})"

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def is_empty(self) -> bool:
        return not self.participants

    def add_participant(self, connection: Connection, username: str) -> str:
        """Register ``connection`` under ``username`` and return its fresh user id.

        Announcing the newcomer is left to the caller so the joiner can be
        served its own confirmation first.
        """
        user_id = uuid.uuid4().hex
        self.participants[connection] = Participant(username=username, user_id=user_id)
        logger.debug(f"Added participant {user_id} ({username}) to room {self.room_id} (participants: {len(self.participants)})")
        return user_id

    def remove_participant(self, connection: Connection) -> Optional[Participant]:
        participant = self.participants.pop(connection, None)
        if participant:
            logger.debug(f"Removed participant {participant.user_id} from room {self.room_id} (participants: {len(self.participants)})")
        return participant

    def get_participant(self, connection: Connection) -> Optional[Participant]:
        return self.participants.get(connection)

    def find_by_user_id(self, user_id: str) -> Optional[Connection]:
        for connection, participant in list(self.participants.items()):
            if participant.user_id == user_id:
                return connection
        return None

    def participants_snapshot(self) -> List[ParticipantInfo]:
        return [participant.info() for participant in list(self.participants.values())]

    def record_history(self, message: BaseModel) -> bool:
        """Append a gesture or chat message, evicting the oldest past the cap."""
        if not isinstance(message, (GestureEvent, ChatEvent)):
            logger.debug(f"Not recording {type(message).__name__} in history of room {self.room_id}")
            return False
        self.history.append(message)
        return True

    def recent_history(self, limit: int) -> List[HistoryEntry]:
        if limit <= 0:
            return []
        return list(self.history)[-limit:]

    async def broadcast(self, message: BaseModel, exclude: Optional[Connection] = None) -> int:
        """Send ``message`` to every participant except ``exclude``.

        Membership is copied before sending, so joins and leaves during the
        fan-out neither fault the loop nor get a duplicate. A failed send is
        logged and skipped; that connection's own close handles its removal.

        Returns the number of successful deliveries.
        """
        recipients = [connection for connection in list(self.participants) if connection is not exclude]
        if not recipients:
            return 0

        results = await asyncio.gather(
            *(connection.send(message) for connection in recipients),
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(recipients, results):
            if isinstance(result, BaseException):
                logger.warning(f"Error sending to connection {connection.connection_id} in room {self.room_id}: {result!r}")
            else:
                delivered += 1
        logger.debug(f"Broadcasted {type(message).__name__} to {delivered}/{len(recipients)} connections in room {self.room_id}")
        return delivered
