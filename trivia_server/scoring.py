"""Score arithmetic for user totals and the solo leaderboard.

Everything here is stateless; the repository and routers call into it.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .models import SoloResult, User
from .schemas import LeaderboardEntry


def apply_score_change(current: int, points_change: int, solo: bool) -> int:
    """Return the new total after applying *points_change* to *current*.

    Solo games only ever add points. Other modes may subtract, but the total
    never drops below zero.
    """
    current = current or 0
    if solo:
        return current + max(0, points_change)
    return max(0, current + points_change)


def _beats(candidate: SoloResult, best: SoloResult) -> bool:
    if candidate.score != best.score:
        return candidate.score > best.score
    return candidate.created_at < best.created_at


def best_results_per_user(
    results: Iterable[SoloResult], users: Dict[str, User]
) -> List[Tuple[SoloResult, User]]:
    """Pick each known user's best result; unknown users are skipped."""
    best: Dict[str, Tuple[SoloResult, User]] = {}
    for result in results:
        user = users.get(result.user_id)
        if user is None:
            continue
        current = best.get(result.user_id)
        if current is None or _beats(result, current[0]):
            best[result.user_id] = (result, user)
    return list(best.values())


def rank_solo_leaderboard(
    results: Iterable[SoloResult],
    users: Dict[str, User],
    limit: int = 50,
    offset: int = 0,
) -> List[LeaderboardEntry]:
    """Score descending, earlier result first on ties, then paginate."""
    ranked = sorted(
        best_results_per_user(results, users),
        key=lambda pair: (-pair[0].score, pair[0].created_at),
    )
    entries = [
        LeaderboardEntry(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            avatar=user.avatar,
            score=result.score,
            correct_answers=result.correct_answers,
            total_questions=result.total_questions,
            average_time=result.average_time or 0,
            difficulty=result.difficulty,
            category=result.category or "Mixed",
            timestamp=result.created_at,
        )
        for result, user in ranked
    ]
    return entries[offset : offset + limit]


__all__ = ["apply_score_change", "best_results_per_user", "rank_solo_leaderboard"]
