"""Websocket message protocol.

Inbound frames are JSON objects discriminated by ``type``. Each type is its own
pydantic model carrying only the fields it needs; anything that does not fit
raises ``ProtocolError`` before any state is touched.
"""
from __future__ import annotations

import json
import math
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    Strict,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .constants import (
    CLIENT_MESSAGE_TYPES,
    DEFAULT_MAX_PLAYERS,
    DEFAULT_ROOM_NAME,
    MAX_PLAYERS,
    MIN_PLAYERS,
    ROOM_CONFIG_MAX_DEPTH,
    ROOM_NAME_MAX_LENGTH,
)
from .errors import ProtocolError
from .models import Room

Identifier = Annotated[str, Strict(), StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]


# -----------------------------
# Inbound
# -----------------------------

class ClientMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class JoinLobby(ClientMessage):
    type: Literal["join_lobby"]
    user_id: Identifier


class CreateRoom(ClientMessage):
    type: Literal["create_room"]
    user_id: Identifier
    room_name: str = DEFAULT_ROOM_NAME
    max_players: int = DEFAULT_MAX_PLAYERS
    config: Any = None

    @field_validator("room_name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> str:
        return normalize_room_name(value)

    @field_validator("max_players", mode="before")
    @classmethod
    def _clamp_max_players(cls, value: Any) -> int:
        return clamp_max_players(value)

    @field_validator("config")
    @classmethod
    def _bounded_config(cls, value: Any) -> Any:
        if _nested_deeper_than(value, ROOM_CONFIG_MAX_DEPTH):
            raise ValueError("config is nested too deeply")
        return value


class JoinRoom(ClientMessage):
    type: Literal["join_room"]
    user_id: Identifier
    room_id: Identifier


class LeaveRoom(ClientMessage):
    # Any roomId in the payload is ignored; the registry knows the real room
    type: Literal["leave_room"]
    user_id: Identifier


class GetRooms(ClientMessage):
    type: Literal["get_rooms"]


InboundMessage = Annotated[
    Union[JoinLobby, CreateRoom, JoinRoom, LeaveRoom, GetRooms],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def normalize_room_name(value: Any) -> str:
    """Trim and cap a display name; non-text or blank input gets the default."""
    if not isinstance(value, str):
        return DEFAULT_ROOM_NAME
    name = value.strip()[:ROOM_NAME_MAX_LENGTH].strip()
    return name or DEFAULT_ROOM_NAME


def _nested_deeper_than(value: Any, limit: int) -> bool:
    if isinstance(value, dict):
        children = list(value.values())
    elif isinstance(value, list):
        children = value
    else:
        return False
    if limit <= 0:
        return True
    return any(_nested_deeper_than(child, limit - 1) for child in children)


def clamp_max_players(value: Any) -> int:
    """Coerce a number or numeric string into [MIN_PLAYERS, MAX_PLAYERS].

    Missing, zero and non-numeric values fall back to the default capacity.
    """
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return DEFAULT_MAX_PLAYERS
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_MAX_PLAYERS
    # Integers are compared as-is; arbitrarily large ones must not go through float
    if value == 0 or (isinstance(value, float) and not math.isfinite(value)):
        return DEFAULT_MAX_PLAYERS
    return max(MIN_PLAYERS, min(int(value), MAX_PLAYERS))


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    # loc is (tag, field, ...) for a discriminated union
    field = next((str(part) for part in error["loc"][1:]), None)
    if field is None:
        return "Invalid message"
    if error["type"] == "missing":
        return f"Missing {field}"
    return f"Invalid {field}"


def parse_client_message(raw: Union[str, bytes]) -> InboundMessage:
    """Decode and validate one inbound frame."""
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        raise ProtocolError("Invalid message format") from None
    if not isinstance(payload, dict):
        raise ProtocolError("Invalid message format")

    kind = payload.get("type")
    if not isinstance(kind, str):
        raise ProtocolError("Invalid message type")
    if kind not in CLIENT_MESSAGE_TYPES:
        raise ProtocolError(f"Unknown message type: {kind[:40]}")

    try:
        return _inbound_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ProtocolError(_describe(exc)) from None


# -----------------------------
# Outbound
# -----------------------------

def lobby_joined(user_id: str) -> Dict[str, Any]:
    return {"type": "lobby_joined", "userId": user_id}


def room_created(room: Room) -> Dict[str, Any]:
    return {"type": "room_created", "room": room.to_wire()}


def room_joined(room: Room) -> Dict[str, Any]:
    return {"type": "room_joined", "room": room.to_wire()}


def room_left() -> Dict[str, Any]:
    return {"type": "room_left"}


def player_joined(user_id: str) -> Dict[str, Any]:
    return {"type": "player_joined", "userId": user_id}


def player_left(user_id: str) -> Dict[str, Any]:
    return {"type": "player_left", "userId": user_id}


def rooms_list(rooms: List[Room]) -> Dict[str, Any]:
    return {"type": "rooms_list", "rooms": [r.to_wire() for r in rooms]}


def room_list_updated() -> Dict[str, Any]:
    return {"type": "room_list_updated"}


def error(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}


__all__ = [
    "ClientMessage",
    "JoinLobby",
    "CreateRoom",
    "JoinRoom",
    "LeaveRoom",
    "GetRooms",
    "InboundMessage",
    "normalize_room_name",
    "clamp_max_players",
    "parse_client_message",
    "lobby_joined",
    "room_created",
    "room_joined",
    "room_left",
    "player_joined",
    "player_left",
    "rooms_list",
    "room_list_updated",
    "error",
]
