from fastapi import APIRouter, Depends, status

from routers.dependencies import get_message_store, require_admission
from schemas.messages import (
    AppendMessageRequest,
    MarkReadRequest,
    Message,
    SuccessResponse,
    ToggleReactionRequest,
    TypingStatusRequest,
)
from schemas.rooms import Admission
from services.messages import MessageStore

messages_router = APIRouter(prefix="/rooms/{room_id}", tags=["messages"])


@messages_router.post(
    "/messages",
    response_model=Message,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    body: AppendMessageRequest,
    admission: Admission = Depends(require_admission),
    store: MessageStore = Depends(get_message_store),
):
    # text is stored and relayed verbatim; it may be ciphertext
    return store.append(admission, body.sender, body.text)


@messages_router.get("/messages", response_model=list[Message], response_model_exclude_none=True)
async def list_messages(
    admission: Admission = Depends(require_admission),
    store: MessageStore = Depends(get_message_store),
):
    """Full log in append order; owner_token is present only on the caller's own messages."""
    return store.list(admission)


@messages_router.post("/messages/react", response_model=SuccessResponse)
async def toggle_reaction(
    body: ToggleReactionRequest,
    admission: Admission = Depends(require_admission),
    store: MessageStore = Depends(get_message_store),
):
    store.toggle_reaction(admission, body.message_id, body.emoji, body.username)
    return SuccessResponse()


@messages_router.post("/messages/read", response_model=SuccessResponse)
async def mark_read(
    body: MarkReadRequest,
    admission: Admission = Depends(require_admission),
    store: MessageStore = Depends(get_message_store),
):
    store.mark_read(admission, body.message_id, body.username)
    return SuccessResponse()


@messages_router.post("/typing", response_model=SuccessResponse)
async def set_typing_status(
    body: TypingStatusRequest,
    admission: Admission = Depends(require_admission),
    store: MessageStore = Depends(get_message_store),
):
    store.set_typing(admission, body.username, body.is_typing)
    return SuccessResponse()
