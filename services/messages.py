import uuid
from typing import Callable, Optional

import redis
from pydantic import ValidationError as PydanticValidationError

from backend import RedisBackend
from events import (
    EventFanout,
    MessageCreated,
    ReactionChanged,
    ReactionChangedData,
    ReadReceipt,
    ReadReceiptData,
    TypingStatus,
    TypingStatusData,
)
from exceptions import MessageNotFound, ValidationError
from logging_config import get_logger
from redis_keys import messages_key
from schemas.messages import AppendMessageRequest, Message, Reaction
from schemas.rooms import Admission
from services.rooms import now_ms
from services.ttl import TTLSynchronizer

logger = get_logger(__name__)


def toggle_reaction(message: Message, emoji: str, username: str) -> Message:
    """Apply a reaction toggle; applying it twice restores the prior reaction set."""
    reactions = [r.model_copy(deep=True) for r in message.reactions]
    existing = next((r for r in reactions if r.emoji == emoji), None)

    if existing is None:
        reactions.append(Reaction(emoji=emoji, users=[username]))
    elif username in existing.users:
        existing.users = [u for u in existing.users if u != username]
        if not existing.users:
            reactions = [r for r in reactions if r.emoji != emoji]
    else:
        existing.users.append(username)

    return message.model_copy(update={"reactions": reactions})


class MessageStore:
    """Append-only per-room message log with two in-place mutations.

    Mutations are index-addressed (LSET) and run under WATCH on the room's
    log, so two concurrent writers on one room never lose an update.
    """

    def __init__(self, backend: RedisBackend, fanout: EventFanout, ttl_sync: TTLSynchronizer):
        self.backend = backend
        self.fanout = fanout
        self.ttl_sync = ttl_sync

    def append(self, admission: Admission, sender: str, text: str) -> Message:
        try:
            # the request schema is the one place the length limits live
            request = AppendMessageRequest(sender=sender, text=text)
        except PydanticValidationError as e:
            error = e.errors()[0]
            raise ValidationError(f"{error['loc'][0]}: {error['msg']}") from e

        room_id = admission.room_id
        message = Message(
            id=uuid.uuid4().hex,
            sender=request.sender,
            text=request.text,
            timestamp=now_ms(),
            room_id=room_id,
            owner_token=admission.token,
        )
        index = self.backend.append_message(room_id, message.model_dump())
        self.ttl_sync.sync(room_id)
        self.fanout.channel(room_id).emit(MessageCreated(data=message.public()))
        logger.info(f"Message {message.id} appended to room {room_id} at index {index}")
        return message

    def list(self, admission: Admission) -> list[Message]:
        return [
            Message.model_validate(entry).for_reader(admission.token)
            for entry in self.backend.list_messages(admission.room_id)
        ]

    def toggle_reaction(self, admission: Admission, message_id: str, emoji: str, username: str):
        room_id = admission.room_id
        self._mutate(room_id, message_id, lambda m: toggle_reaction(m, emoji, username))
        self.ttl_sync.sync(room_id)
        self.fanout.channel(room_id).emit(
            ReactionChanged(data=ReactionChangedData(message_id=message_id, emoji=emoji, username=username))
        )
        logger.debug(f"Reaction {emoji} toggled by {username} on message {message_id} in room {room_id}")

    def mark_read(self, admission: Admission, message_id: str, username: str) -> bool:
        """Record username in the message's read_by; False when it was already there."""
        room_id = admission.room_id

        def add_reader(message: Message):
            if username in message.read_by:
                return None
            return message.model_copy(update={"read_by": [*message.read_by, username]})

        changed = self._mutate(room_id, message_id, add_reader)
        if not changed:
            return False
        self.ttl_sync.sync(room_id)
        self.fanout.channel(room_id).emit(
            ReadReceipt(data=ReadReceiptData(message_id=message_id, username=username))
        )
        logger.debug(f"Message {message_id} in room {room_id} read by {username}")
        return True

    def set_typing(self, admission: Admission, username: str, is_typing: bool):
        # typing status lives only on the channel, never in the store
        self.fanout.channel(admission.room_id).emit(
            TypingStatus(data=TypingStatusData(username=username, is_typing=is_typing))
        )

    def _mutate(self, room_id: str, message_id: str, update: Callable[[Message], Optional[Message]]) -> bool:
        """Read-modify-write one message in place; update returns None for a no-op."""
        key = messages_key(room_id)

        def _apply(pipe: redis.client.Pipeline) -> bool:
            entries = pipe.lrange(key, 0, -1)
            for index, raw in enumerate(entries):
                message = Message.model_validate_json(raw)
                if message.id != message_id:
                    continue
                updated = update(message)
                if updated is None:
                    return False
                pipe.multi()
                pipe.lset(key, index, updated.model_dump_json())
                return True
            raise MessageNotFound(message_id)

        try:
            return self.backend.run_optimistic(key, _apply)
        except MessageNotFound:
            logger.warning(f"Message {message_id} not found in room {room_id}")
            raise
