"""
User progress API
Stored rollup, read-time summary and leaderboard
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.completions import CompletionResponse
from app.core.database import get_db
from app.core.identity import get_current_user_id
from app.services.completion_service import CompletionService
from app.services.progress_service import ProgressService


router = APIRouter(prefix="/progress", tags=["User progress"])


# Schemas
class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    earned_at: str


class ProgressResponse(BaseModel):
    """
    Stored rollup

    Monotonic and best-effort: deleted completions are not subtracted.
    streak_days is derived from completion dates on every read.
    """
    user_id: str
    total_quizzes_completed: int
    total_quizzes_passed: int
    total_score: int
    total_max_score: int
    average_score: int
    total_time_spent: int
    completion_rate: int
    last_activity_at: Optional[str]
    streak_days: int
    badges: List[BadgeResponse]


class ProgressSummaryResponse(BaseModel):
    """Figures recomputed from the caller's completions"""
    total_quizzes_completed: int
    total_quizzes_passed: int
    average_score: int
    completion_rate: int
    total_time_spent: int
    recent_activity: List[CompletionResponse]
    streak_days: int
    cpd_hours: float
    achievements: List[BadgeResponse]


class LeaderboardEntry(BaseModel):
    user_id: str
    average_score: int
    total_quizzes_completed: int
    total_quizzes_passed: int
    badge_count: int


# Endpoints
@router.get("", response_model=Optional[ProgressResponse])
async def get_progress(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Caller's rollup, null before the first stored completion"""
    progress = ProgressService.get_progress(db, user_id)
    return ProgressResponse(**progress) if progress else None


@router.get("/summary", response_model=ProgressSummaryResponse)
async def get_progress_summary(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Streak, CPD hours, achievements and recent activity"""
    summary = ProgressService.get_progress_summary(db, user_id)
    summary["recent_activity"] = [
        CompletionResponse.from_model(c) for c in summary["recent_activity"]
    ]
    return ProgressSummaryResponse(**summary)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Users by average score"""
    return [
        LeaderboardEntry(
            user_id=p.user_id,
            average_score=p.average_score or 0,
            total_quizzes_completed=p.total_quizzes_completed or 0,
            total_quizzes_passed=p.total_quizzes_passed or 0,
            badge_count=len(p.badges or {})
        )
        for p in CompletionService.get_leaderboard(db, limit=limit)
    ]
