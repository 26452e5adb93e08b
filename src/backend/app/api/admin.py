"""
Admin API
Staff operations on other users' attempt limits and completion data.
Protected by AdminIPWhitelistMiddleware (/api/admin/*).
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.completions import CompletionResponse, QuizStatsResponse
from app.api.continuation import AttemptStatusResponse, MessageResponse
from app.core.admin_security import validate_id_path
from app.core.database import get_db
from app.services.completion_service import CompletionService
from app.services.continuation_service import ContinuationService


router = APIRouter(prefix="/admin", tags=["Admin"])


# Schemas
class CustomLimitRequest(BaseModel):
    """Per-user attempt budget; null removes the override"""
    max_attempts: Optional[int] = None


# Endpoints
@router.get("/continuation/{quiz_id}/users/{user_id}/status", response_model=AttemptStatusResponse)
async def get_user_attempt_status(
    quiz_id: str,
    user_id: str,
    db: Session = Depends(get_db)
):
    """Attempt status of any user"""
    validate_id_path(quiz_id, "quiz ID")
    validate_id_path(user_id, "user ID")
    status = ContinuationService.check_attempt_limits(db, user_id, quiz_id)
    return AttemptStatusResponse.from_status(status)


@router.post("/continuation/{quiz_id}/users/{user_id}/reset", response_model=MessageResponse)
async def reset_user_attempts(
    quiz_id: str,
    user_id: str,
    db: Session = Depends(get_db)
):
    """Reset any user's attempt window"""
    validate_id_path(quiz_id, "quiz ID")
    validate_id_path(user_id, "user ID")
    ContinuationService.reset_user_attempts(db, user_id, quiz_id)
    return MessageResponse(message="User attempts reset successfully")


@router.put("/continuation/{quiz_id}/users/{user_id}/limit", response_model=AttemptStatusResponse)
async def set_custom_limit(
    quiz_id: str,
    user_id: str,
    request: CustomLimitRequest,
    db: Session = Depends(get_db)
):
    """Override the attempt budget for one user on one quiz"""
    validate_id_path(quiz_id, "quiz ID")
    validate_id_path(user_id, "user ID")
    try:
        ContinuationService.set_custom_max_attempts(db, user_id, quiz_id, request.max_attempts)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    status = ContinuationService.check_attempt_limits(db, user_id, quiz_id)
    return AttemptStatusResponse.from_status(status)


@router.get("/completions/recent", response_model=List[CompletionResponse])
async def get_recent_completions(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Latest completions across all users"""
    return [CompletionResponse.from_model(c) for c in CompletionService.get_recent_completions(db, limit=limit)]


@router.get("/quizzes/{quiz_id}/completions", response_model=List[CompletionResponse])
async def get_quiz_completions(
    quiz_id: str,
    db: Session = Depends(get_db)
):
    """Every stored completion of a quiz"""
    validate_id_path(quiz_id, "quiz ID")
    return [CompletionResponse.from_model(c) for c in CompletionService.find_completions_by_quiz(db, quiz_id)]


@router.get("/quizzes/{quiz_id}/stats", response_model=QuizStatsResponse)
async def get_quiz_stats(
    quiz_id: str,
    db: Session = Depends(get_db)
):
    validate_id_path(quiz_id, "quiz ID")
    return QuizStatsResponse(**CompletionService.get_quiz_stats(db, quiz_id))


@router.get("/episodes/{content_id}/completions", response_model=List[CompletionResponse])
async def get_episode_completions(
    content_id: str,
    db: Session = Depends(get_db)
):
    """Completions of quizzes attached to an episode"""
    validate_id_path(content_id, "episode ID")
    return [CompletionResponse.from_model(c) for c in CompletionService.find_completions_by_content(db, content_id)]


@router.get("/users/{user_id}/completions", response_model=List[CompletionResponse])
async def get_user_completions(
    user_id: str,
    db: Session = Depends(get_db)
):
    validate_id_path(user_id, "user ID")
    return [CompletionResponse.from_model(c) for c in CompletionService.find_completions_by_user(db, user_id)]
