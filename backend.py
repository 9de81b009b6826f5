import functools
import json
import threading
from typing import Callable, Optional, TypeVar

import redis

from constants import (
    MUTATION_MAX_RETRIES,
    PUBSUB_POLL_SECONDS,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_TIMEOUT_SECONDS,
)
from exceptions import TransientStoreFailure
from logging_config import get_logger
from redis_keys import channel_name, companion_keys, messages_key, meta_key

logger = get_logger(__name__)

T = TypeVar("T")


def create_redis_client() -> redis.Redis:
    """Build the default Redis client from environment configuration.

    Every call is bounded by REDIS_TIMEOUT_SECONDS so a stalled store surfaces
    as a TransientStoreFailure instead of hanging the request.
    """
    logger.info(f"Connecting to Redis at {REDIS_HOST}:{REDIS_PORT} db={REDIS_DB}")
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        password=REDIS_PASSWORD,
        db=REDIS_DB,
        decode_responses=True,
        socket_timeout=REDIS_TIMEOUT_SECONDS,
        socket_connect_timeout=REDIS_TIMEOUT_SECONDS,
    )


def store_call(func):
    """Translate Redis connectivity failures into TransientStoreFailure."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
            logger.error(f"Redis call {func.__name__} failed: {e}", exc_info=True)
            raise TransientStoreFailure() from e

    return wrapper


def encode_hash(data: dict) -> dict:
    # Convert dict values to strings for Redis hash, skip None values
    encoded = {}
    for k, v in data.items():
        if v is None:
            continue
        if isinstance(v, (dict, list)):
            encoded[k] = json.dumps(v)
        else:
            encoded[k] = str(v)
    return encoded


def decode_hash(raw: dict) -> dict:
    decoded = {}
    for k, v in raw.items():
        try:
            decoded[k] = json.loads(v)
        except (json.JSONDecodeError, TypeError):
            decoded[k] = v
    return decoded


class RedisBackend:
    """Thin storage and pub/sub layer over one Redis client.

    The backend knows the key layout and the wire encoding, never the room
    rules; those live in services/.
    """

    def __init__(self, redis_client: redis.Redis, max_retries: int = MUTATION_MAX_RETRIES):
        self.redis_client = redis_client
        self.max_retries = max_retries

    @store_call
    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    # Rooms

    @store_call
    def room_exists(self, room_id: str) -> bool:
        return self.redis_client.exists(meta_key(room_id)) == 1

    @store_call
    def create_room(self, room_id: str, room_data: dict, ttl: int):
        key = meta_key(room_id)
        logger.debug(f"Creating room {room_id} with TTL {ttl} seconds at {key}")
        # hash + expiry in one transaction: the meta key never exists without a TTL
        with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=encode_hash(room_data))
            pipe.expire(key, ttl)
            pipe.execute()
        return room_id

    @store_call
    def get_room(self, room_id: str) -> Optional[dict]:
        raw = self.redis_client.hgetall(meta_key(room_id))
        if not raw:
            logger.debug(f"Room {room_id} not found in Redis")
            return None
        return decode_hash(raw)

    @store_call
    def get_ttl(self, key: str) -> int:
        """Remaining lifetime of key in seconds; -2 when absent, -1 when it has no expiry."""
        return self.redis_client.ttl(key)

    @store_call
    def get_pttl(self, key: str) -> int:
        return self.redis_client.pttl(key)

    @store_call
    def pexpire_keys(self, keys: list[str], milliseconds: int):
        with self.redis_client.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.pexpire(key, milliseconds)
            return pipe.execute()

    @store_call
    def delete_room(self, room_id: str) -> int:
        keys = [meta_key(room_id), *companion_keys(room_id)]
        deleted = self.redis_client.delete(*keys)
        logger.debug(f"Room {room_id} deleted: {deleted} of {len(keys)} keys existed")
        return deleted

    # Message log

    @store_call
    def append_message(self, room_id: str, entry: dict) -> int:
        """Push one encoded message to the end of the room log, returning its index."""
        length = self.redis_client.rpush(messages_key(room_id), json.dumps(entry))
        return length - 1

    @store_call
    def list_messages(self, room_id: str) -> list[dict]:
        return [json.loads(raw) for raw in self.redis_client.lrange(messages_key(room_id), 0, -1)]

    # Optimistic read-modify-write

    @store_call
    def run_optimistic(self, key: str, func: Callable[[redis.client.Pipeline], T]) -> T:
        """Run func under WATCH on key, retrying when a concurrent writer wins.

        func reads through the pipeline in immediate mode, and when it needs to
        write it calls pipe.multi() and queues the writes. A func that queues
        nothing is treated as a no-op and the watch is dropped.
        """
        with self.redis_client.pipeline() as pipe:
            for attempt in range(1, self.max_retries + 1):
                try:
                    pipe.watch(key)
                    result = func(pipe)
                    if pipe.explicit_transaction:
                        pipe.execute()
                    else:
                        pipe.unwatch()
                    return result
                except redis.WatchError:
                    logger.debug(f"Write conflict on {key}, attempt {attempt}/{self.max_retries}")
                    pipe.reset()
        logger.warning(f"Gave up on {key} after {self.max_retries} conflicting attempts")
        raise TransientStoreFailure(f"Too much write contention on {key}")

    # Pub/sub

    def get_room_channel_name(self, room_id: str) -> str:
        return channel_name(room_id)

    @store_call
    def publish(self, room_id: str, payload: str) -> int:
        channel = self.get_room_channel_name(room_id)
        subscribers = self.redis_client.publish(channel, payload)
        logger.debug(f"Published to {channel}, {subscribers} subscribers")
        return subscribers

    @store_call
    def subscribe_to_room(self, room_id: str) -> "RoomSubscription":
        """Create a pubsub subscriber for a room channel."""
        channel = self.get_room_channel_name(room_id)
        pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(channel)
        logger.debug(f"Subscribed to Redis channel {channel}")
        return RoomSubscription(pubsub, channel)


class RoomSubscription:
    """One room channel subscription, polled from executor threads.

    close() never tears the connection down under a poll that is still
    blocked in get_message(); the in-flight poll closes it on its way out.
    """

    def __init__(self, pubsub, channel: str):
        self.pubsub = pubsub
        self.channel = channel
        self.closed = False
        self._closing = False
        self._lock = threading.Lock()

    def poll(self, timeout: float = PUBSUB_POLL_SECONDS) -> Optional[dict]:
        try:
            with self._lock:
                if self.closed:
                    return None
                return self.pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        finally:
            # checked after release, so a close() that lost the lock race is always honoured
            if self._closing:
                self.close()

    def close(self):
        self._closing = True
        # a poll holding the lock will close on release; never block the event loop here
        if self._lock.acquire(blocking=False):
            try:
                self._close_locked()
            finally:
                self._lock.release()

    def _close_locked(self):
        if self.closed:
            return
        self.closed = True
        self.pubsub.close()
        logger.debug(f"Closed subscription to {self.channel}")
