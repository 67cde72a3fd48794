import time

from fastapi import APIRouter, Depends, HTTPException, Request

from backend import RoomRegistry
from logging_config import get_logger
from schemas.rooms import HealthResponse, RoomDetailsResponse, RoomStats, StatsResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api", tags=["rooms"])
health_router = APIRouter(tags=["health"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@rooms_router.get("/stats", response_model=StatsResponse)
async def get_stats(registry: RoomRegistry = Depends(get_registry)):
    """
    Snapshot of every live room.

    Returns:
    - totalRooms: Number of rooms in the registry
    - totalParticipants: Sum of participants across rooms
    - rooms: roomId, participant count, history length and createdAt per room
    """
    rooms = [
        RoomStats(
            room_id=summary.room_id,
            participants=summary.participant_count,
            messages=summary.history_length,
            created_at=summary.created_at,
        )
        for summary in registry.list_all()
    ]
    logger.debug(f"Stats requested: {len(rooms)} rooms")
    return StatsResponse(
        total_rooms=len(rooms),
        total_participants=sum(room.participants for room in rooms),
        rooms=rooms,
    )


@rooms_router.get("/room/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, registry: RoomRegistry = Depends(get_registry)):
    room = registry.get(room_id)
    if not room:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        room_id=room.room_id,
        participants=room.participants_snapshot(),
        message_count=len(room.history),
        created_at=room.created_at,
    )


@health_router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, registry: RoomRegistry = Depends(get_registry)):
    return HealthResponse(
        status="ok",
        uptime=time.monotonic() - request.app.state.started_at,
        room_count=len(registry),
    )
