import time
import uuid
from typing import Optional

from backend import RedisBackend
from constants import DEFAULT_MAX_USERS, MAX_MAX_USERS, MIN_MAX_USERS, ROOM_TTL_SECONDS
from events import EventFanout, RoomDestroyed
from exceptions import RoomNotFound
from logging_config import get_logger
from schemas.rooms import Admission, RoomInfoResponse
from services.ttl import TTLSynchronizer

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 5


def clamp_max_users(max_users: Optional[int]) -> int:
    if max_users is None:
        return DEFAULT_MAX_USERS
    return max(MIN_MAX_USERS, min(MAX_MAX_USERS, int(max_users)))


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomManager:
    def __init__(
        self,
        backend: RedisBackend,
        fanout: EventFanout,
        ttl_sync: TTLSynchronizer,
        room_ttl_seconds: int = ROOM_TTL_SECONDS,
    ):
        self.backend = backend
        self.fanout = fanout
        self.ttl_sync = ttl_sync
        self.room_ttl_seconds = room_ttl_seconds

    def create_room(self, max_users: Optional[int] = None) -> str:
        capacity = clamp_max_users(max_users)
        room_id = uuid.uuid4().hex
        # a collision is practically impossible, but a clash must never overwrite a live room
        for _ in range(MAX_ID_ATTEMPTS):
            if not self.backend.room_exists(room_id):
                break
            logger.warning(f"Room id {room_id} already in use, generating another")
            room_id = uuid.uuid4().hex

        self.backend.create_room(
            room_id,
            {
                "connected": [],
                "max_users": capacity,
                "created_at": now_ms(),
            },
            ttl=self.room_ttl_seconds,
        )
        logger.info(f"Room {room_id} created: max_users={capacity}, ttl={self.room_ttl_seconds}s")
        return room_id

    def get_room_info(self, room_id: str) -> RoomInfoResponse:
        room = self.backend.get_room(room_id)
        if not room:
            logger.warning(f"Room info failed: room {room_id} not found")
            raise RoomNotFound(room_id)
        return RoomInfoResponse(
            room_id=room_id,
            connected_count=len(room.get("connected") or []),
            max_users=int(room.get("max_users") or DEFAULT_MAX_USERS),
        )

    def get_remaining_lifetime(self, admission: Admission) -> int:
        return self.ttl_sync.remaining_seconds(admission.room_id)

    def destroy_room(self, admission: Admission):
        room_id = admission.room_id
        # publish first so subscribers are still listening when the keys go away
        self.fanout.channel(room_id).emit(RoomDestroyed())
        self.backend.delete_room(room_id)
        logger.info(f"Room {room_id} destroyed by an admitted member")
