from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth_utils import authenticate, get_current_user, get_repository, hash_password
from ..errors import RepositoryError, UsernameTaken
from ..models import User
from ..rate_limit import rate_limited
from ..schemas import (
    AuthResponse,
    LeaderboardEntry,
    LoginRequest,
    RegisterRequest,
    UpdateScoreRequest,
    UpdateScoreResponse,
    UserPublic,
)
from ..storage import JsonRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["users"])


def _public(user: User) -> UserPublic:
    return UserPublic.model_validate(user.model_dump(exclude={"password_hash"}))


@router.post(
    "/auth/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("auth"))],
)
async def register(req: RegisterRequest, repository: JsonRepository = Depends(get_repository)):
    try:
        user = await repository.create_user(
            username=req.username,
            password_hash=hash_password(req.password),
            display_name=req.display_name,
            avatar=req.avatar,
        )
    except UsernameTaken:
        raise HTTPException(status_code=400, detail="Username already exists")
    except RepositoryError:
        raise HTTPException(status_code=500, detail="Registration failed")
    logger.info("Registered user %s (%s)", user.username, user.id)
    return AuthResponse(user=_public(user))


@router.post("/auth/login", response_model=AuthResponse, dependencies=[Depends(rate_limited("auth"))])
async def login(req: LoginRequest, repository: JsonRepository = Depends(get_repository)):
    user = await authenticate(repository, req.username, req.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthResponse(user=_public(user))


@router.get("/users/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    repository: JsonRepository = Depends(get_repository),
):
    if current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    user = await repository.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _public(user)


@router.post(
    "/users/update-score",
    response_model=UpdateScoreResponse,
    dependencies=[Depends(rate_limited("write"))],
)
async def update_score(
    req: UpdateScoreRequest,
    current_user: User = Depends(get_current_user),
    repository: JsonRepository = Depends(get_repository),
):
    if current_user.id != req.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    try:
        user = await repository.change_user_score(req.user_id, req.points_change, solo=req.is_solo_mode)
    except RepositoryError:
        raise HTTPException(status_code=500, detail="Failed to update score")
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UpdateScoreResponse(new_score=user.total_score)


@router.get("/leaderboard/solo", response_model=List[LeaderboardEntry])
async def solo_leaderboard(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0, le=5000),
    repository: JsonRepository = Depends(get_repository),
):
    return await repository.solo_leaderboard(limit=limit, offset=offset)
