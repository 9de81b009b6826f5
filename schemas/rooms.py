from pydantic import BaseModel
from typing import Optional


class CreateRoomRequest(BaseModel):
    # clamped into [MIN_MAX_USERS, MAX_MAX_USERS] by the room manager
    max_users: Optional[int] = None

class CreateRoomResponse(BaseModel):
    room_id: str

class RoomInfoResponse(BaseModel):
    room_id: str
    connected_count: int
    max_users: int

class TTLResponse(BaseModel):
    ttl: int

class Admission(BaseModel):
    room_id: str
    token: str
    connected: list[str]
    max_users: int
    newly_admitted: bool = False
