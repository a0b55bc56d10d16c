"""JSON-file backed repository for users, rooms, participants and solo results.

All records live in memory and the whole file is rewritten after every write.
Compound membership changes (participant row plus ``current_players``) are a
single repository call so callers never observe one without the other.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

import anyio
from pydantic import ValidationError

from .constants import DEFAULT_AVATAR, ROOM_STATUSES, ROOM_WAITING
from .errors import (
    AlreadyParticipant,
    RepositoryError,
    RoomFull,
    RoomNotFound,
    RoomNotJoinable,
    UsernameTaken,
)
from .models import Participant, Room, SoloResult, StoreData, User
from .schemas import LeaderboardEntry
from .scoring import apply_score_change, rank_solo_leaderboard

logger = logging.getLogger(__name__)


class JsonRepository:
    """Key-value store persisted as one JSON document.

    ``path=None`` gives a purely in-memory repository.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._data = StoreData()
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Read the data file if it exists; a missing file means an empty store."""
        if self.path is None:
            return
        file = anyio.Path(self.path)
        if not await file.exists():
            logger.info("No data file at %s, starting empty", self.path)
            return
        try:
            raw = await file.read_text(encoding="utf-8")
            self._data = StoreData.model_validate_json(raw)
        except (OSError, ValidationError) as exc:
            raise RepositoryError(f"Could not load data file {self.path}") from exc
        logger.info(
            "Loaded %d users, %d rooms from %s",
            len(self._data.users),
            len(self._data.rooms),
            self.path,
        )

    async def _flush(self) -> None:
        if self.path is None:
            return
        payload = self._data.model_dump_json(by_alias=True, indent=2)
        file = anyio.Path(self.path)
        await file.parent.mkdir(parents=True, exist_ok=True)
        await file.write_text(payload, encoding="utf-8")

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[StoreData]:
        """Run one logical write: mutate, persist, or roll back entirely."""
        async with self._write_lock:
            snapshot = self._data.model_copy(deep=True)
            try:
                yield self._data
                await self._flush()
            except OSError as exc:
                self._data = snapshot
                logger.exception("Failed to persist data to %s", self.path)
                raise RepositoryError("Failed to save data") from exc
            except BaseException:
                self._data = snapshot
                raise

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._data.users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        for user in self._data.users.values():
            if user.username == username:
                return user.model_copy()
        return None

    async def create_user(
        self,
        username: str,
        password_hash: str,
        display_name: str,
        avatar: Optional[str] = None,
    ) -> User:
        async with self._write() as data:
            if any(u.username == username for u in data.users.values()):
                raise UsernameTaken(username)
            user = User(
                username=username,
                password_hash=password_hash,
                display_name=display_name,
                avatar=avatar or DEFAULT_AVATAR,
            )
            data.users[user.id] = user
        return user.model_copy()

    async def change_user_score(self, user_id: str, points_change: int, solo: bool = False) -> Optional[User]:
        """Apply *points_change* to the stored total in one write; ``None`` for an unknown user."""
        async with self._write() as data:
            user = data.users.get(user_id)
            if user is None:
                return None
            user.total_score = apply_score_change(user.total_score, points_change, solo)
        return user.model_copy()

    # ------------------------------------------------------------------
    # Rooms & participants
    # ------------------------------------------------------------------

    async def create_room(self, name: str, host_id: str, max_players: int, config: Any = None) -> Room:
        """Create a waiting room with *host_id* as its one participant."""
        async with self._write() as data:
            room = Room(name=name, host_id=host_id, max_players=max_players, config=config, current_players=1)
            host = Participant(room_id=room.id, user_id=host_id)
            data.rooms[room.id] = room
            data.participants[host.id] = host
        return room.model_copy(deep=True)

    async def get_room(self, room_id: str) -> Optional[Room]:
        room = self._data.rooms.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def list_waiting_rooms(self) -> List[Room]:
        """Waiting rooms, newest first (later insertion wins on equal timestamps)."""
        waiting = [r for r in reversed(list(self._data.rooms.values())) if r.status == ROOM_WAITING]
        waiting.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in waiting]

    async def update_room_status(self, room_id: str, status: str) -> Optional[Room]:
        if status not in ROOM_STATUSES:
            raise ValueError(f"Unknown room status {status!r}")
        async with self._write() as data:
            room = data.rooms.get(room_id)
            if room is None:
                return None
            room.status = status
        return room.model_copy(deep=True)

    async def list_participants(self, room_id: str) -> List[Participant]:
        members = [p for p in self._data.participants.values() if p.room_id == room_id]
        members.sort(key=lambda p: p.joined_at)
        return [p.model_copy() for p in members]

    async def add_participant(self, room_id: str, user_id: str) -> Participant:
        """Insert a participant row and bump ``current_players`` together.

        Raises a ``PreconditionError`` subclass, leaving the room untouched, if
        the room is missing, not waiting, full, or already has this user.
        """
        async with self._write() as data:
            room = data.rooms.get(room_id)
            if room is None:
                raise RoomNotFound(room_id)
            if room.status != ROOM_WAITING:
                raise RoomNotJoinable(room_id, room.status)
            if room.current_players >= room.max_players:
                raise RoomFull(room_id)
            if self._find_participant(data, room_id, user_id) is not None:
                raise AlreadyParticipant(room_id, user_id)
            participant = Participant(room_id=room_id, user_id=user_id)
            data.participants[participant.id] = participant
            room.current_players += 1
        return participant.model_copy()

    async def remove_participant(self, room_id: str, user_id: str) -> bool:
        """Drop the (room, user) row and decrement, floored at zero.

        Returns ``False`` when there was nothing to remove.
        """
        async with self._write() as data:
            participant = self._find_participant(data, room_id, user_id)
            if participant is None:
                return False
            del data.participants[participant.id]
            room = data.rooms.get(room_id)
            if room is not None:
                room.current_players = max(0, room.current_players - 1)
        return True

    @staticmethod
    def _find_participant(data: StoreData, room_id: str, user_id: str) -> Optional[Participant]:
        for participant in data.participants.values():
            if participant.room_id == room_id and participant.user_id == user_id:
                return participant
        return None

    # ------------------------------------------------------------------
    # Solo results
    # ------------------------------------------------------------------

    async def add_solo_result(
        self,
        user_id: str,
        score: int,
        correct_answers: int,
        total_questions: int,
        difficulty: str,
        average_time: Optional[int] = None,
        category: Any = None,
        config: Any = None,
    ) -> SoloResult:
        async with self._write() as data:
            result = SoloResult(
                user_id=user_id,
                score=score,
                correct_answers=correct_answers,
                total_questions=total_questions,
                average_time=average_time,
                difficulty=difficulty,
                category=category,
                config=config,
            )
            data.solo_results[result.id] = result
        return result.model_copy()

    async def solo_leaderboard(self, limit: int = 50, offset: int = 0) -> List[LeaderboardEntry]:
        return rank_solo_leaderboard(
            self._data.solo_results.values(), self._data.users, limit=limit, offset=offset
        )


__all__ = ["JsonRepository"]
