from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth_utils import get_current_user, get_repository
from ..models import User
from ..schemas import ParticipantOut, RoomDetail, RoomOut
from ..storage import JsonRepository

router = APIRouter(prefix="/api", tags=["rooms"])


@router.get("/rooms", response_model=List[RoomOut])
async def list_rooms(
    current_user: User = Depends(get_current_user),
    repository: JsonRepository = Depends(get_repository),
):
    """Rooms that are still waiting for players, newest first."""
    rooms = await repository.list_waiting_rooms()
    return [RoomOut.model_validate(r.model_dump()) for r in rooms]


@router.get("/rooms/{room_id}", response_model=RoomDetail)
async def get_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    repository: JsonRepository = Depends(get_repository),
):
    room = await repository.get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    participants = await repository.list_participants(room_id)
    return RoomDetail(
        room=RoomOut.model_validate(room.model_dump()),
        participants=[ParticipantOut.model_validate(p.model_dump()) for p in participants],
    )
