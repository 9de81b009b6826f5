import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))
REDIS_TIMEOUT_SECONDS = float(os.getenv("REDIS_TIMEOUT_SECONDS", 5))

# Rooms have a hard age-based expiry, never extended by activity
ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 60 * 20))

DEFAULT_MAX_USERS = int(os.getenv("DEFAULT_MAX_USERS", 5))
MIN_MAX_USERS = 2
MAX_MAX_USERS = 10

MAX_TEXT_LENGTH = 1000
MAX_SENDER_LENGTH = 100
MAX_USERNAME_LENGTH = 100
MAX_EMOJI_LENGTH = 32

MUTATION_MAX_RETRIES = int(os.getenv("MUTATION_MAX_RETRIES", 10))

AUTH_COOKIE_NAME = "x-auth-token"
AUTH_HEADER_NAME = "X-Auth-Token"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Seconds the websocket relay blocks on a single pub/sub poll
PUBSUB_POLL_SECONDS = 1.0

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)
