from backend import RedisBackend
from exceptions import RoomNotFound
from logging_config import get_logger
from redis_keys import companion_keys, meta_key

logger = get_logger(__name__)


class TTLSynchronizer:
    """Keeps every room-scoped key on the metadata key's countdown.

    The metadata TTL is set once at creation and never extended; companion
    keys are re-aligned to whatever is left of it after each write.
    """

    def __init__(self, backend: RedisBackend):
        self.backend = backend

    def remaining_seconds(self, room_id: str) -> int:
        ttl = self.backend.get_ttl(meta_key(room_id))
        return ttl if ttl > 0 else 0

    def sync(self, room_id: str) -> int:
        remaining_ms = self.backend.get_pttl(meta_key(room_id))
        if remaining_ms == -2:
            # metadata expired under us: whatever the write just created is an orphan
            logger.warning(f"Room {room_id} expired during a write, clearing companion keys")
            self.backend.delete_room(room_id)
            raise RoomNotFound(room_id)
        if remaining_ms < 0:
            logger.warning(f"Room {room_id} metadata has no expiry, leaving companion keys untouched")
            return remaining_ms
        self.backend.pexpire_keys(companion_keys(room_id), remaining_ms)
        logger.debug(f"Synced companion keys of room {room_id} to {remaining_ms}ms")
        return remaining_ms
