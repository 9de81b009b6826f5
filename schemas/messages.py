from pydantic import BaseModel, Field
from typing import Optional

from constants import MAX_EMOJI_LENGTH, MAX_SENDER_LENGTH, MAX_TEXT_LENGTH, MAX_USERNAME_LENGTH


class Reaction(BaseModel):
    emoji: str
    # a set in practice: display names are never duplicated
    users: list[str] = Field(default_factory=list)

class Message(BaseModel):
    id: str
    sender: str
    # opaque payload, possibly ciphertext; never interpreted server-side
    text: str
    timestamp: int
    room_id: str
    reactions: list[Reaction] = Field(default_factory=list)
    read_by: list[str] = Field(default_factory=list)
    owner_token: Optional[str] = None

    def for_reader(self, token: Optional[str]) -> "Message":
        """Copy of the message as seen by the holder of token.

        The sender's token is kept only when it is the reader's own.
        """
        owner_token = self.owner_token if token and self.owner_token == token else None
        return self.model_copy(update={"owner_token": owner_token})

    def public(self) -> "Message":
        return self.model_copy(update={"owner_token": None})

class AppendMessageRequest(BaseModel):
    sender: str = Field(min_length=1, max_length=MAX_SENDER_LENGTH)
    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)

class ToggleReactionRequest(BaseModel):
    message_id: str = Field(min_length=1)
    emoji: str = Field(min_length=1, max_length=MAX_EMOJI_LENGTH)
    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)

class MarkReadRequest(BaseModel):
    message_id: str = Field(min_length=1)
    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)

class TypingStatusRequest(BaseModel):
    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)
    is_typing: bool

class SuccessResponse(BaseModel):
    success: bool = True
