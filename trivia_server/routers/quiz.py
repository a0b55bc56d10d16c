from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..auth_utils import get_current_user, get_repository
from ..errors import RepositoryError, TriviaAPIError
from ..models import User
from ..rate_limit import rate_limited
from ..schemas import Difficulty, QuizConfig, SoloSaveRequest, SoloSaveResponse, TriviaQuestion
from ..storage import JsonRepository
from ..trivia import TriviaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quiz"])


def get_trivia_client(request: Request) -> TriviaClient:
    return request.app.state.trivia


@router.get("/questions", response_model=List[TriviaQuestion])
async def get_questions(
    amount: int = Query(default=5, ge=1, le=50),
    category: int = Query(default=0, ge=0),
    difficulty: Difficulty = Query(default="any"),
    trivia: TriviaClient = Depends(get_trivia_client),
):
    config = QuizConfig(amount=amount, category=category, difficulty=difficulty)
    try:
        return await trivia.fetch_questions(config)
    except TriviaAPIError as exc:
        logger.warning("Question fetch failed: %s", exc.message)
        raise HTTPException(status_code=502, detail=exc.message)


@router.post("/solo/save", response_model=SoloSaveResponse, dependencies=[Depends(rate_limited("write"))])
async def save_solo_result(
    req: SoloSaveRequest,
    current_user: User = Depends(get_current_user),
    repository: JsonRepository = Depends(get_repository),
):
    if current_user.id != req.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    try:
        result = await repository.add_solo_result(
            user_id=req.user_id,
            score=req.score,
            correct_answers=req.correct_answers,
            total_questions=req.total_questions,
            difficulty=req.difficulty,
            average_time=req.average_time,
            category=req.category,
            config=req.config,
        )
    except RepositoryError:
        raise HTTPException(status_code=500, detail="Failed to save solo result")
    return SoloSaveResponse(id=result.id)
