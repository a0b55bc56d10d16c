ROOM_NAME_MAX_LENGTH = 80
DEFAULT_ROOM_NAME = "Room"

MIN_PLAYERS = 2
MAX_PLAYERS = 16
DEFAULT_MAX_PLAYERS = 8

# Quiz config is stored opaquely but must stay shallow
ROOM_CONFIG_MAX_DEPTH = 8

# Room lifecycle. Only *waiting* rooms are listed and joinable.
ROOM_WAITING = "waiting"
ROOM_PLAYING = "playing"
ROOM_FINISHED = "finished"
ROOM_STATUSES = (ROOM_WAITING, ROOM_PLAYING, ROOM_FINISHED)

DEFAULT_AVATAR = "👤"

# Inbound websocket message types
JOIN_LOBBY = "join_lobby"
CREATE_ROOM = "create_room"
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
GET_ROOMS = "get_rooms"
CLIENT_MESSAGE_TYPES = frozenset({JOIN_LOBBY, CREATE_ROOM, JOIN_ROOM, LEAVE_ROOM, GET_ROOMS})

# Websocket close codes
WS_CLOSE_BAD_CREDENTIALS = 4001

__all__ = [
    "ROOM_NAME_MAX_LENGTH",
    "DEFAULT_ROOM_NAME",
    "MIN_PLAYERS",
    "MAX_PLAYERS",
    "DEFAULT_MAX_PLAYERS",
    "ROOM_CONFIG_MAX_DEPTH",
    "ROOM_WAITING",
    "ROOM_PLAYING",
    "ROOM_FINISHED",
    "ROOM_STATUSES",
    "DEFAULT_AVATAR",
    "JOIN_LOBBY",
    "CREATE_ROOM",
    "JOIN_ROOM",
    "LEAVE_ROOM",
    "GET_ROOMS",
    "CLIENT_MESSAGE_TYPES",
    "WS_CLOSE_BAD_CREDENTIALS",
]
