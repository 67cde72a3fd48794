import time
from typing import Annotated, Any, Literal, Union

from pydantic import AllowInfNan, BaseModel, ConfigDict, Field, StrictInt, Strict, StringConstraints
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
RoomCode = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
FiniteFloat = Annotated[float, Strict(), AllowInfNan(False)]
Confidence = Union[StrictInt, FiniteFloat]


def timestamp_ms() -> int:
    return int(time.time() * 1000)


class WireModel(BaseModel):
    # Frames are camelCase on the wire; frozen so history entries never change
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ParticipantInfo(WireModel):
    username: str
    user_id: str


# Inbound frames

class JoinMessage(WireModel):
    room_id: RoomCode
    username: NonEmptyStr

class GestureMessage(WireModel):
    gesture: NonEmptyStr
    confidence: Confidence

class ChatMessage(WireModel):
    message: NonEmptyStr

class SignalMessage(WireModel):
    to: NonEmptyStr
    signal: Any


# Outbound frames

class GestureEvent(WireModel):
    type: Literal["gesture"] = "gesture"
    username: str
    gesture: str
    confidence: Confidence
    timestamp: int = Field(default_factory=timestamp_ms)

class ChatEvent(WireModel):
    type: Literal["message"] = "message"
    username: str
    message: str
    timestamp: int = Field(default_factory=timestamp_ms)

HistoryEntry = Union[GestureEvent, ChatEvent]

class HistoryMessage(WireModel):
    type: Literal["history"] = "history"
    messages: list[HistoryEntry]

class JoinedMessage(WireModel):
    type: Literal["joined"] = "joined"
    room_id: str
    user_id: str
    participants: list[ParticipantInfo]

class ParticipantJoined(WireModel):
    type: Literal["participant_joined"] = "participant_joined"
    username: str
    user_id: str
    participants: list[ParticipantInfo]

class ParticipantLeft(WireModel):
    type: Literal["participant_left"] = "participant_left"
    username: str
    user_id: str
    participants: list[ParticipantInfo]

class SignalEvent(WireModel):
    type: Literal["signal"] = "signal"
    sender: str = Field(alias="from")
    signal: Any

class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    message: str
