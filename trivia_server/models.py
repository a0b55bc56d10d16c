"""Records persisted by the JSON repository.

Field names are snake_case in Python and camelCase in the data file and on the
wire, which is what the browser client reads.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import DEFAULT_AVATAR, DEFAULT_MAX_PLAYERS, ROOM_WAITING


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class User(Record):
    """User account."""

    id: str = Field(default_factory=_new_id)
    username: str
    password_hash: str
    display_name: str
    avatar: str = DEFAULT_AVATAR
    games_played: int = 0
    total_score: int = 0
    created_at: datetime = Field(default_factory=_now)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"password_hash"})


class Room(Record):
    id: str = Field(default_factory=_new_id)
    name: str
    host_id: str
    status: str = ROOM_WAITING  # waiting | playing | finished
    max_players: int = DEFAULT_MAX_PLAYERS
    current_players: int = 0
    # Quiz configuration (amount / category / difficulty); never interpreted here
    config: Any = None
    created_at: datetime = Field(default_factory=_now)


class Participant(Record):
    id: str = Field(default_factory=_new_id)
    room_id: str
    user_id: str
    score: int = 0
    is_ready: bool = False
    joined_at: datetime = Field(default_factory=_now)


class SoloResult(Record):
    id: str = Field(default_factory=_new_id)
    user_id: str
    score: int = 0
    correct_answers: int = 0
    total_questions: int
    average_time: Optional[int] = None  # milliseconds per question
    difficulty: str
    category: Any = None
    config: Any = None
    created_at: datetime = Field(default_factory=_now)


class StoreData(Record):
    """Whole contents of the data file."""

    users: Dict[str, User] = Field(default_factory=dict)
    rooms: Dict[str, Room] = Field(default_factory=dict)
    participants: Dict[str, Participant] = Field(default_factory=dict)
    solo_results: Dict[str, SoloResult] = Field(default_factory=dict)


__all__ = ["Record", "User", "Room", "Participant", "SoloResult", "StoreData"]
