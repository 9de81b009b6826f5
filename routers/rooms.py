from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from logging_config import get_logger
from routers.dependencies import get_room_manager, require_admission
from schemas.rooms import Admission, CreateRoomRequest, CreateRoomResponse, RoomInfoResponse, TTLResponse
from services.rooms import RoomManager

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.post("/", response_model=CreateRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: Request,
    room: Optional[CreateRoomRequest] = None,
    manager: RoomManager = Depends(get_room_manager),
):
    client_host = request.client.host if request.client else "unknown"
    max_users = room.max_users if room else None
    logger.info(f"Room creation request from {client_host}, max_users: {max_users}")
    room_id = manager.create_room(max_users)
    return CreateRoomResponse(room_id=room_id)


@rooms_router.get("/{room_id}", response_model=RoomInfoResponse)
async def get_room_info(room_id: str, manager: RoomManager = Depends(get_room_manager)):
    """
    Membership count and capacity of a room.
    Not sensitive, so no token is required.
    """
    return manager.get_room_info(room_id)


@rooms_router.get("/{room_id}/ttl", response_model=TTLResponse)
async def get_remaining_lifetime(
    admission: Admission = Depends(require_admission),
    manager: RoomManager = Depends(get_room_manager),
):
    """Seconds until the room expires, 0 once it has."""
    return TTLResponse(ttl=manager.get_remaining_lifetime(admission))


@rooms_router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def destroy_room(
    admission: Admission = Depends(require_admission),
    manager: RoomManager = Depends(get_room_manager),
):
    # - room.destroyed is published to the room channel first
    # - then meta and every companion key are deleted
    manager.destroy_room(admission)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
