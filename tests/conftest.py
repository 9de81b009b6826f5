import fakeredis
import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RedisBackend
from events import EventFanout, parse_event
from services.admission import AdmissionGate
from services.messages import MessageStore
from services.rooms import RoomManager
from services.ttl import TTLSynchronizer


@pytest.fixture
def redis_client():
    """A private in-memory Redis per test."""
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    client.close()


@pytest.fixture
def backend(redis_client) -> RedisBackend:
    return RedisBackend(redis_client)


@pytest.fixture
def fanout(backend) -> EventFanout:
    return EventFanout(backend)


@pytest.fixture
def ttl_sync(backend) -> TTLSynchronizer:
    return TTLSynchronizer(backend)


@pytest.fixture
def gate(backend) -> AdmissionGate:
    return AdmissionGate(backend)


@pytest.fixture
def manager(backend, fanout, ttl_sync) -> RoomManager:
    return RoomManager(backend, fanout, ttl_sync)


@pytest.fixture
def store(backend, fanout, ttl_sync) -> MessageStore:
    return MessageStore(backend, fanout, ttl_sync)


@pytest.fixture
def room_id(manager) -> str:
    return manager.create_room(max_users=2)


@pytest.fixture
def client(backend) -> TestClient:
    return TestClient(create_app(backend))


@pytest.fixture
def subscribe(backend):
    """Subscribe to a room channel; returns a callable that drains received events."""
    subscriptions = []

    def _subscribe(room_id: str):
        subscription = backend.subscribe_to_room(room_id)
        subscriptions.append(subscription)

        def drain():
            events = []
            for _ in range(20):
                message = subscription.poll(timeout=0.01)
                if message and message["type"] == "message":
                    events.append(parse_event(message["data"]))
            return events

        return drain

    yield _subscribe
    for subscription in subscriptions:
        subscription.close()
