"""Error taxonomy for the room/message engine.

Every failure surfaced to a caller is a ChatError carrying its own HTTP status,
so the FastAPI handlers in error_handlers.py can render one uniform envelope.
"""


class ChatError(Exception):
    """Base exception for all room/message errors."""

    def __init__(self, message: str, code: str = "CHAT_ERROR", http_status: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class NotFound(ChatError):
    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code, http_status=404)


class RoomNotFound(NotFound):
    def __init__(self, room_id: str):
        super().__init__("Room not found", code="ROOM_NOT_FOUND")
        self.room_id = room_id


class MessageNotFound(NotFound):
    def __init__(self, message_id: str):
        super().__init__("Message not found", code="MESSAGE_NOT_FOUND")
        self.message_id = message_id


class Unauthorized(ChatError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", http_status=401)


class CapacityExceeded(ChatError):
    def __init__(self, message: str = "Room is full"):
        super().__init__(message, code="ROOM_FULL", http_status=403)


class ValidationError(ChatError):
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR", http_status=400)


class TransientStoreFailure(ChatError):
    """Timeout, connectivity loss or unresolved write contention against Redis.

    Reads are safe to retry. Writes such as message append are not idempotent.
    """

    def __init__(self, message: str = "Store temporarily unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE", http_status=503)
