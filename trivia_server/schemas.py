"""Pydantic request / response schemas for the HTTP API.

Persisted records live in ``trivia_server.models``; this module only holds the
shapes that cross the HTTP boundary.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------
# Users & auth
# -----------------------------

class UserPublic(CamelModel):
    """User as shown to clients (no password hash)."""

    id: str
    username: str
    display_name: str
    avatar: str
    games_played: int = 0
    total_score: int = 0
    created_at: Optional[datetime] = None


class RegisterRequest(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=8, max_length=128)
    display_name: str = Field(min_length=1, max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=16)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)


class AuthResponse(CamelModel):
    user: UserPublic


class UpdateScoreRequest(CamelModel):
    user_id: str
    points_change: int = Field(ge=-1000, le=1000)
    is_solo_mode: bool = False


class UpdateScoreResponse(CamelModel):
    success: bool = True
    new_score: int


# -----------------------------
# Rooms
# -----------------------------

class RoomOut(CamelModel):
    id: str
    name: str
    host_id: str
    status: str
    max_players: int
    current_players: int
    config: Any = None
    created_at: datetime


class ParticipantOut(CamelModel):
    id: str
    room_id: str
    user_id: str
    score: int
    is_ready: bool
    joined_at: datetime


class RoomDetail(CamelModel):
    room: RoomOut
    participants: List[ParticipantOut]


# -----------------------------
# Solo mode & leaderboard
# -----------------------------

class SoloSaveRequest(CamelModel):
    user_id: str
    score: int = Field(ge=0, le=1000)
    correct_answers: int = Field(ge=0, le=1000)
    total_questions: int = Field(ge=1, le=1000)
    average_time: Optional[int] = Field(default=None, ge=0, le=3_600_000)
    difficulty: str = Field(default="medium", min_length=1, max_length=20)
    category: Any = None
    config: Any = None


class SoloSaveResponse(CamelModel):
    success: bool = True
    id: str


class LeaderboardEntry(CamelModel):
    """Best solo result of one user."""

    id: str
    username: str
    display_name: str
    avatar: str
    score: int
    correct_answers: int
    total_questions: int
    average_time: int
    difficulty: str
    category: Any
    timestamp: datetime


# -----------------------------
# Trivia questions
# -----------------------------

Difficulty = Literal["any", "easy", "medium", "hard"]


class QuizConfig(CamelModel):
    amount: int = Field(default=5, ge=1, le=50)
    category: int = Field(default=0, ge=0)  # 0 means "any"
    difficulty: Difficulty = "any"


class TriviaQuestion(BaseModel):
    """One decoded question, field names as the OpenTDB API sends them."""

    category: str
    type: str
    difficulty: str
    question: str
    correct_answer: str
    incorrect_answers: List[str]


__all__ = [
    "CamelModel",
    "UserPublic",
    "RegisterRequest",
    "LoginRequest",
    "AuthResponse",
    "UpdateScoreRequest",
    "UpdateScoreResponse",
    "RoomOut",
    "ParticipantOut",
    "RoomDetail",
    "SoloSaveRequest",
    "SoloSaveResponse",
    "LeaderboardEntry",
    "Difficulty",
    "QuizConfig",
    "TriviaQuestion",
]
