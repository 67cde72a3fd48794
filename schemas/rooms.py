from schemas.messages import ParticipantInfo, WireModel


class RoomStats(WireModel):
    room_id: str
    participants: int
    messages: int
    created_at: int

class StatsResponse(WireModel):
    total_rooms: int
    total_participants: int
    rooms: list[RoomStats]

class RoomDetailsResponse(WireModel):
    room_id: str
    participants: list[ParticipantInfo]
    message_count: int
    created_at: int

class HealthResponse(WireModel):
    status: str
    uptime: float
    room_count: int
