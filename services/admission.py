from typing import Optional

import redis

from backend import RedisBackend, decode_hash, encode_hash
from constants import DEFAULT_MAX_USERS
from exceptions import CapacityExceeded, RoomNotFound, Unauthorized
from logging_config import get_logger, short_token
from redis_keys import meta_key
from schemas.rooms import Admission

logger = get_logger(__name__)


class AdmissionGate:
    """Decides whether a token may act on a room.

    A token already in the room's connected list is admitted. A new token is
    admitted, and permanently recorded, on first use while capacity remains;
    past that point it is rejected as CapacityExceeded.
    """

    def __init__(self, backend: RedisBackend):
        self.backend = backend

    def admit(self, room_id: str, token: Optional[str]) -> Admission:
        if not room_id or not token:
            logger.warning(f"Admission to room {room_id} rejected: missing token")
            raise Unauthorized("Missing room id or token")

        key = meta_key(room_id)

        def _admit(pipe: redis.client.Pipeline) -> Admission:
            raw = pipe.hgetall(key)
            if not raw:
                raise RoomNotFound(room_id)
            room = decode_hash(raw)
            connected = list(room.get("connected") or [])
            max_users = int(room.get("max_users") or DEFAULT_MAX_USERS)

            if token in connected:
                return Admission(room_id=room_id, token=token, connected=connected, max_users=max_users)
            if len(connected) >= max_users:
                raise CapacityExceeded("Room is at maximum capacity")

            connected.append(token)
            pipe.multi()
            pipe.hset(key, mapping=encode_hash({"connected": connected}))
            return Admission(
                room_id=room_id,
                token=token,
                connected=connected,
                max_users=max_users,
                newly_admitted=True,
            )

        try:
            admission = self.backend.run_optimistic(key, _admit)
        except RoomNotFound:
            logger.warning(f"Admission failed: room {room_id} not found")
            raise
        except CapacityExceeded:
            logger.warning(f"Admission failed: room {room_id} is full, token {short_token(token)} rejected")
            raise

        if admission.newly_admitted:
            logger.info(
                f"Token {short_token(token)} admitted to room {room_id} "
                f"({len(admission.connected)}/{admission.max_users})"
            )
        return admission
