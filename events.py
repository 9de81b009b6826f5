"""Room event catalogue and the publish side of the fanout.

Each event is a pydantic model tagged by a literal ``event`` name, so the
channel carries one discriminated union instead of free-form dicts. Delivery
is best-effort and at most once: nothing here is persisted, and a client
that missed events reconciles through the list/info endpoints.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from backend import RedisBackend
from logging_config import get_logger
from schemas.messages import Message

logger = get_logger(__name__)


class ReactionChangedData(BaseModel):
    message_id: str
    emoji: str
    username: str

class ReadReceiptData(BaseModel):
    message_id: str
    username: str

class TypingStatusData(BaseModel):
    username: str
    is_typing: bool

class RoomDestroyedData(BaseModel):
    is_destroyed: Literal[True] = True


class MessageCreated(BaseModel):
    event: Literal["message.created"] = "message.created"
    data: Message

class ReactionChanged(BaseModel):
    event: Literal["reaction.changed"] = "reaction.changed"
    data: ReactionChangedData

class ReadReceipt(BaseModel):
    event: Literal["read.receipt"] = "read.receipt"
    data: ReadReceiptData

class TypingStatus(BaseModel):
    event: Literal["typing.status"] = "typing.status"
    data: TypingStatusData

class RoomDestroyed(BaseModel):
    event: Literal["room.destroyed"] = "room.destroyed"
    data: RoomDestroyedData = Field(default_factory=RoomDestroyedData)


RoomEvent = Annotated[
    Union[MessageCreated, ReactionChanged, ReadReceipt, TypingStatus, RoomDestroyed],
    Field(discriminator="event"),
]

room_event_adapter = TypeAdapter(RoomEvent)


def parse_event(raw) -> Optional[RoomEvent]:
    """Validate a frame read off a room channel; None when it is not a known event."""
    try:
        if isinstance(raw, (str, bytes)):
            return room_event_adapter.validate_json(raw)
        return room_event_adapter.validate_python(raw)
    except PydanticValidationError as e:
        logger.warning(f"Dropping malformed room event: {e.error_count()} validation errors")
        return None


class RoomChannel:
    def __init__(self, backend: RedisBackend, room_id: str):
        self.backend = backend
        self.room_id = room_id

    def emit(self, event: RoomEvent) -> int:
        if isinstance(event, MessageCreated) and event.data.owner_token is not None:
            # tokens never travel over the fanout channel
            event = MessageCreated(data=event.data.public())
        subscribers = self.backend.publish(self.room_id, event.model_dump_json())
        logger.debug(f"Emitted {event.event} to room {self.room_id} ({subscribers} subscribers)")
        return subscribers


class EventFanout:
    def __init__(self, backend: RedisBackend):
        self.backend = backend

    def channel(self, room_id: str) -> RoomChannel:
        return RoomChannel(self.backend, room_id)
