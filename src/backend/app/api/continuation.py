"""
Quiz continuation API
Attempt status, attempt recording and resets for the calling user
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.continuation import ContinuationStatus
from app.core.database import get_db
from app.core.identity import get_current_user_id
from app.services.continuation_service import ContinuationService


router = APIRouter(prefix="/continuation", tags=["Quiz continuation"])


# Schemas
class AttemptStatusResponse(BaseModel):
    """Attempt-status payload (camelCase on the wire)"""
    model_config = ConfigDict(populate_by_name=True)

    can_attempt: bool = Field(alias="canAttempt")
    attempts_remaining: int = Field(alias="attemptsRemaining")
    total_attempts: int = Field(alias="totalAttempts")
    attempts_used: int = Field(alias="attemptsUsed")
    next_attempt_available_at: Optional[str] = Field(default=None, alias="nextAttemptAvailableAt")
    reset_at: str = Field(alias="resetAt")
    blocked_until: Optional[str] = Field(default=None, alias="blockedUntil")
    message: str

    @classmethod
    def from_status(cls, status: ContinuationStatus) -> "AttemptStatusResponse":
        return cls(**status.to_dict())


class RecordAttemptRequest(BaseModel):
    """Record-attempt request"""
    passed: bool = False


class MessageResponse(BaseModel):
    message: str


class AttemptCompletionRate(BaseModel):
    attempt: int
    completion_rate: int


class ContinuationStatsResponse(BaseModel):
    """Attempt usage across users"""
    total_users: int
    average_attempts_used: float
    completion_rate_by_attempt: List[AttemptCompletionRate]


# Endpoints
@router.get("/{quiz_id}/status", response_model=AttemptStatusResponse)
async def get_attempt_status(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Whether the caller may start an attempt now"""
    status = ContinuationService.check_attempt_limits(db, user_id, quiz_id)
    return AttemptStatusResponse.from_status(status)


@router.post("/{quiz_id}/attempts", response_model=MessageResponse)
async def record_attempt(
    quiz_id: str,
    request: RecordAttemptRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Consume one attempt"""
    ContinuationService.record_attempt(db, user_id, quiz_id, passed=request.passed)
    return MessageResponse(message="Attempt recorded successfully")


@router.post("/{quiz_id}/reset", response_model=MessageResponse)
async def reset_attempts(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Start a fresh attempt window"""
    ContinuationService.reset_user_attempts(db, user_id, quiz_id)
    return MessageResponse(message="User attempts reset successfully")


@router.get("/{quiz_id}/stats", response_model=ContinuationStatsResponse)
async def get_continuation_stats(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Attempt usage and completion rate per attempt number"""
    return ContinuationStatsResponse(**ContinuationService.get_continuation_stats(db, quiz_id))


def raise_policy_denied(status: ContinuationStatus):
    """403 carrying the attempt-status payload"""
    raise HTTPException(status_code=403, detail=status.to_dict())
