REDIS_META_KEY = "room:meta:{slug}" # room id - hash of room metadata
REDIS_MESSAGES_KEY = "room:messages:{slug}" # room id - list of JSON encoded messages
REDIS_ROOM_CHANNEL = "room:channel:{slug}" # room id - pub/sub channel name

# Room-scoped keys that must expire together with REDIS_META_KEY
REDIS_COMPANION_KEYS = (REDIS_MESSAGES_KEY,)

# **`room:meta:{id}` hash fields**
# - `connected` = json list of admitted tokens
# - `max_users` = integer, fixed at creation
# - `created_at` = epoch milliseconds

# **`room:messages:{id}` list entries**
# - json message including the sender's `owner_token`
# - mutated in place with LSET (reactions, read receipts), never removed individually


def meta_key(room_id: str) -> str:
    return REDIS_META_KEY.format(slug=room_id)


def messages_key(room_id: str) -> str:
    return REDIS_MESSAGES_KEY.format(slug=room_id)


def channel_name(room_id: str) -> str:
    return REDIS_ROOM_CHANNEL.format(slug=room_id)


def companion_keys(room_id: str) -> list[str]:
    return [key.format(slug=room_id) for key in REDIS_COMPANION_KEYS]
