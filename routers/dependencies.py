from typing import Optional

from fastapi import Cookie, Depends, Header, Request

from backend import RedisBackend
from constants import AUTH_COOKIE_NAME, AUTH_HEADER_NAME
from events import EventFanout
from schemas.rooms import Admission
from services.admission import AdmissionGate
from services.messages import MessageStore
from services.rooms import RoomManager
from services.ttl import TTLSynchronizer


def get_backend(request: Request) -> RedisBackend:
    return request.app.state.redis_backend


def get_fanout(backend: RedisBackend = Depends(get_backend)) -> EventFanout:
    return EventFanout(backend)


def get_ttl_sync(backend: RedisBackend = Depends(get_backend)) -> TTLSynchronizer:
    return TTLSynchronizer(backend)


def get_admission_gate(backend: RedisBackend = Depends(get_backend)) -> AdmissionGate:
    return AdmissionGate(backend)


def get_room_manager(
    backend: RedisBackend = Depends(get_backend),
    fanout: EventFanout = Depends(get_fanout),
    ttl_sync: TTLSynchronizer = Depends(get_ttl_sync),
) -> RoomManager:
    return RoomManager(backend, fanout, ttl_sync)


def get_message_store(
    backend: RedisBackend = Depends(get_backend),
    fanout: EventFanout = Depends(get_fanout),
    ttl_sync: TTLSynchronizer = Depends(get_ttl_sync),
) -> MessageStore:
    return MessageStore(backend, fanout, ttl_sync)


def get_token(
    cookie_token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    header_token: Optional[str] = Header(None, alias=AUTH_HEADER_NAME),
) -> Optional[str]:
    # browsers send the cookie, other clients the header
    return cookie_token or header_token


def require_admission(
    room_id: str,
    token: Optional[str] = Depends(get_token),
    gate: AdmissionGate = Depends(get_admission_gate),
) -> Admission:
    return gate.admit(room_id, token)
