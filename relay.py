"""
Per-connection message dispatch.

A ``RelaySession`` is a two-state machine: it starts *unjoined* and moves to
*joined* on the first well-formed ``join`` frame, staying there until the
connection closes. Frames are fed one at a time through ``handle_text`` so
the machine can be driven without a transport.
"""

import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from backend import RoomRegistry
from connection import Connection
from constants import HISTORY_REPLAY_LIMIT
from logging_config import get_logger
from room import Participant, Room
from schemas.messages import (
    ChatEvent,
    ChatMessage,
    ErrorMessage,
    GestureEvent,
    GestureMessage,
    HistoryMessage,
    JoinedMessage,
    JoinMessage,
    ParticipantJoined,
    ParticipantLeft,
    SignalEvent,
    SignalMessage,
)

logger = get_logger(__name__)

JOIN_REQUIRED_FIELDS_ERROR = "roomId and username are required"


def _reject_constant(name: str):
    # NaN and Infinity parse in Python but cannot be relayed as valid JSON
    raise ValueError(f"non-finite number {name}")


class RelaySession:
    def __init__(
        self,
        connection: Connection,
        registry: RoomRegistry,
        history_replay_limit: int = HISTORY_REPLAY_LIMIT,
    ):
        self.connection = connection
        self.registry = registry
        self.history_replay_limit = history_replay_limit
        self.room: Optional[Room] = None
        self.participant: Optional[Participant] = None
        self.message_count = 0
        self._handlers: Dict[str, Callable[[dict], Awaitable[None]]] = {
            "join": self._handle_join,
            "gesture": self._handle_gesture,
            "message": self._handle_chat,
            "signal": self._handle_signal,
        }

    @property
    def joined(self) -> bool:
        return self.room is not None

    async def run(self, frames: Optional[AsyncIterator[str]] = None) -> None:
        """Consume frames until the client goes away, then leave the room."""
        if frames is None:
            frames = self.connection.frames()
        try:
            async for data in frames:
                await self.handle_text(data)
        finally:
            await self.close()

    async def handle_text(self, data: str) -> None:
        self.message_count += 1
        logger.debug(f"Received message #{self.message_count} from connection {self.connection.connection_id}")

        try:
            message = json.loads(data, parse_constant=_reject_constant)
        except ValueError as e:
            logger.warning(f"Dropping unparseable message from connection {self.connection.connection_id}: {e}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Dropping non-object message from connection {self.connection.connection_id}")
            return

        msg_type = message.get("type")
        if not isinstance(msg_type, str):
            logger.warning(f"Dropping message with non-string type from connection {self.connection.connection_id}")
            return
        handler = self._handlers.get(msg_type)
        if handler is None:
            logger.warning(f"Unknown message type {msg_type!r} from connection {self.connection.connection_id}")
            return
        if msg_type != "join" and not self.joined:
            logger.debug(f"Ignoring {msg_type} from unjoined connection {self.connection.connection_id}")
            return

        await handler(message)

    async def close(self) -> None:
        """Leave the current room, deleting it if this was the last participant."""
        room = self.room
        if room is None:
            return
        self.room = None

        async with room.lock:
            participant = room.remove_participant(self.connection)
            if participant is None:
                return
            logger.info(f"User {participant.user_id} ({participant.username}) left room {room.room_id}")

            if room.is_empty:
                logger.info(f"No more participants in room {room.room_id}, cleaning up")
                self.registry.remove(room.room_id)
                return

            await room.broadcast(ParticipantLeft(
                username=participant.username,
                user_id=participant.user_id,
                participants=room.participants_snapshot(),
            ))

    async def _reply(self, message: BaseModel) -> None:
        try:
            await self.connection.send(message)
        except Exception as e:
            logger.warning(f"Error replying to connection {self.connection.connection_id}: {e!r}")

    async def _handle_join(self, message: Dict[str, Any]) -> None:
        if self.joined:
            logger.info(f"Connection {self.connection.connection_id} already in room {self.room.room_id}, ignoring join")
            return

        try:
            join = JoinMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Invalid join from connection {self.connection.connection_id}: {e.error_count()} errors")
            await self._reply(ErrorMessage(message=JOIN_REQUIRED_FIELDS_ERROR))
            return

        while True:
            room = self.registry.get_or_create(join.room_id)
            async with room.lock:
                # The room may have drained and been dropped while we waited
                if room.closed:
                    continue

                user_id = room.add_participant(self.connection, join.username)
                self.room = room
                self.participant = room.get_participant(self.connection)
                logger.info(f"User {user_id} ({join.username}) joined room {room.room_id} ({room.participant_count} participants)")

                participants = room.participants_snapshot()
                await self._reply(HistoryMessage(messages=room.recent_history(self.history_replay_limit)))
                await self._reply(JoinedMessage(room_id=room.room_id, user_id=user_id, participants=participants))
                await room.broadcast(
                    ParticipantJoined(username=join.username, user_id=user_id, participants=participants),
                    exclude=self.connection,
                )
                return

    async def _handle_gesture(self, message: Dict[str, Any]) -> None:
        try:
            gesture = GestureMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Dropping invalid gesture from user {self.participant.user_id}: {e.error_count()} errors")
            return

        event = GestureEvent(
            username=self.participant.username,
            gesture=gesture.gesture,
            confidence=gesture.confidence,
        )
        logger.debug(f"{self.participant.username}: {event.gesture} ({event.confidence}%) in room {self.room.room_id}")
        await self._publish(event)

    async def _handle_chat(self, message: Dict[str, Any]) -> None:
        try:
            chat = ChatMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Dropping invalid chat message from user {self.participant.user_id}: {e.error_count()} errors")
            return

        event = ChatEvent(username=self.participant.username, message=chat.message)
        logger.debug(f"{self.participant.username} sent a chat message in room {self.room.room_id}")
        await self._publish(event)

    async def _publish(self, event: BaseModel) -> None:
        # Echoed to the sender too, so its UI shows what the room actually got
        room = self.room
        async with room.lock:
            room.record_history(event)
            await room.broadcast(event)

    async def _handle_signal(self, message: Dict[str, Any]) -> None:
        try:
            signal = SignalMessage.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Dropping invalid signal from user {self.participant.user_id}: {e.error_count()} errors")
            return

        target = self.room.find_by_user_id(signal.to)
        if target is None:
            logger.warning(f"Signal from user {self.participant.user_id} to unknown user {signal.to} in room {self.room.room_id}")
            return

        try:
            await target.send(SignalEvent(sender=self.participant.user_id, signal=signal.signal))
            logger.debug(f"Forwarded signal from {self.participant.user_id} to {signal.to} in room {self.room.room_id}")
        except Exception as e:
            logger.warning(f"Error forwarding signal to user {signal.to} in room {self.room.room_id}: {e!r}")
