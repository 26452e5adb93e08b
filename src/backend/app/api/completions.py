"""
Quiz completions API
Submitting results and reading the caller's completion history
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.continuation import raise_policy_denied
from app.core.database import get_db
from app.core.exceptions import PolicyDeniedError, ValidationError
from app.core.identity import get_current_user_id
from app.models import QuizCompletion
from app.services.completion_service import CompletionService


router = APIRouter(prefix="/completions", tags=["Quiz completions"])


# Schemas
class QuizAnswerSchema(BaseModel):
    """Final answer to one question"""
    question_id: str
    selected_answers: List[str]
    is_correct: bool
    points: int = 0


class SubmitCompletionRequest(BaseModel):
    """Submit-completion request"""
    quiz_id: str
    content_id: Optional[str] = None
    answers: List[QuizAnswerSchema]
    percentage: int
    max_score: int = 100
    time_spent: int = 0


class CompletionResponse(BaseModel):
    """Stored completion"""
    id: str
    user_id: str
    quiz_id: str
    content_id: Optional[str]
    score: int
    max_score: int
    percentage: int
    time_spent: int
    completed_at: Optional[str]
    answers: List[QuizAnswerSchema]
    passed: bool
    attempts: int

    @classmethod
    def from_model(cls, completion: QuizCompletion) -> "CompletionResponse":
        return cls(**completion.to_dict())


class QuizProgressResponse(BaseModel):
    """Caller's history on one quiz"""
    quiz_id: str
    attempts: int
    best_score: int
    average_score: int
    time_spent: int
    last_attempt: str
    passed: bool


class QuizStatsResponse(BaseModel):
    """All users' results on one quiz"""
    total_attempts: int
    total_passed: int
    average_score: int
    pass_rate: int
    average_time_spent: int


class DeleteResponse(BaseModel):
    deleted: bool


# Endpoints
@router.post("", response_model=CompletionResponse)
async def submit_completion(
    request: SubmitCompletionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Record a graded result

    Returns the new completion, or the caller's existing best when the
    submission does not improve on it. The attempt is consumed either way.
    """
    try:
        completion = CompletionService.create_completion(
            db,
            user_id=user_id,
            quiz_id=request.quiz_id,
            percentage=request.percentage,
            max_score=request.max_score,
            time_spent=request.time_spent,
            content_id=request.content_id,
            answers=[a.model_dump() for a in request.answers]
        )
        return CompletionResponse.from_model(completion)
    except PolicyDeniedError as e:
        raise_policy_denied(e.status)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=List[CompletionResponse])
async def get_user_completions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """All of the caller's completions, newest first"""
    completions = CompletionService.find_completions_by_user(db, user_id)
    return [CompletionResponse.from_model(c) for c in completions]


@router.get("/recent", response_model=List[CompletionResponse])
async def get_recent_completions(
    limit: int = Query(5, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Caller's most recent completions"""
    completions = CompletionService.get_user_recent_completions(db, user_id, limit=limit)
    return [CompletionResponse.from_model(c) for c in completions]


@router.get("/best/{quiz_id}", response_model=Optional[CompletionResponse])
async def get_best_score(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Caller's best completion for a quiz, null if none"""
    best = CompletionService.get_user_best_score(db, user_id, quiz_id)
    return CompletionResponse.from_model(best) if best else None


@router.get("/quiz/{quiz_id}/progress", response_model=Optional[QuizProgressResponse])
async def get_quiz_progress(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Caller's attempts, best and average score on a quiz, null if never completed"""
    progress = CompletionService.get_quiz_progress(db, user_id, quiz_id)
    return QuizProgressResponse(**progress) if progress else None


@router.get("/quiz/{quiz_id}/stats", response_model=QuizStatsResponse)
async def get_quiz_stats(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Aggregate results across all users"""
    return QuizStatsResponse(**CompletionService.get_quiz_stats(db, quiz_id))


@router.get("/{completion_id}", response_model=CompletionResponse)
async def get_completion(
    completion_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """One of the caller's completions"""
    completion = CompletionService.find_completion_by_id(db, completion_id)
    if not completion or completion.user_id != user_id:
        raise HTTPException(status_code=404, detail="Completion not found")
    return CompletionResponse.from_model(completion)


@router.delete("/{completion_id}", response_model=DeleteResponse)
async def delete_completion(
    completion_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Remove one of the caller's completions

    The progress rollup is monotonic and best-effort: it is not
    recomputed after a delete.
    """
    if not CompletionService.delete_completion(db, completion_id, user_id=user_id):
        raise HTTPException(status_code=404, detail="Completion not found")
    return DeleteResponse(deleted=True)
