"""Exception hierarchy shared by the coordinator, repository and routers.

Websocket handlers turn these into ``{"type": "error"}`` replies; HTTP routers
map them onto ``HTTPException`` status codes.
"""
from __future__ import annotations


class TriviaServerError(Exception):
    """Base class for errors that are reported back to a single client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProtocolError(TriviaServerError):
    """Malformed frame, unknown message type or missing/invalid field."""


class PreconditionError(TriviaServerError):
    """Request is well-formed but not allowed in the current state."""


class RoomNotFound(PreconditionError):
    def __init__(self, room_id: str):
        super().__init__("Room not found")
        self.room_id = room_id


class RoomNotJoinable(PreconditionError):
    def __init__(self, room_id: str, status: str):
        super().__init__("Room is no longer accepting players")
        self.room_id = room_id
        self.status = status


class RoomFull(PreconditionError):
    def __init__(self, room_id: str):
        super().__init__("Room is full")
        self.room_id = room_id


class AlreadyParticipant(PreconditionError):
    def __init__(self, room_id: str, user_id: str):
        super().__init__("Already a member of this room")
        self.room_id = room_id
        self.user_id = user_id


class UsernameTaken(PreconditionError):
    def __init__(self, username: str):
        super().__init__("Username already exists")
        self.username = username


class RepositoryError(TriviaServerError):
    """The durable store could not be read or written."""


class TriviaAPIError(TriviaServerError):
    """The upstream trivia API failed or returned an unusable response."""


__all__ = [
    "TriviaServerError",
    "ProtocolError",
    "PreconditionError",
    "RoomNotFound",
    "RoomNotJoinable",
    "RoomFull",
    "AlreadyParticipant",
    "UsernameTaken",
    "RepositoryError",
    "TriviaAPIError",
]
