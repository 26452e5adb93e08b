"""
Quiz session API
Drives an in-memory QuizSession question by question and submits the result
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.completions import CompletionResponse
from app.api.continuation import raise_policy_denied
from app.core.database import get_db
from app.core.exceptions import NotFoundError, PolicyDeniedError, StoreError
from app.core.identity import get_current_user_id
from app.core.quiz_session import QuizSession, QuizSessionRegistry
from app.services.continuation_service import ContinuationService
from app.services.quiz_service import QuizService
from app.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Quiz sessions"])


def get_session_registry(request: Request) -> QuizSessionRegistry:
    """Registry built at startup and kept on app.state"""
    return request.app.state.quiz_sessions


def _get_owned_session(registry: QuizSessionRegistry, session_id: str, user_id: str) -> QuizSession:
    session = registry.get(session_id, user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Quiz session not found")
    return session


def _check_can_attempt(db: Session, user_id: str, quiz_id: str):
    attempt_status = ContinuationService.check_attempt_limits(db, user_id, quiz_id)
    if not attempt_status.can_attempt:
        raise_policy_denied(attempt_status)


# Schemas
class SelectAnswerRequest(BaseModel):
    """Select-answer request"""
    answer_id: str


# Endpoints
@router.post("/quizzes/{quiz_id}/sessions", response_model=dict, status_code=status.HTTP_201_CREATED)
async def start_session(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """Start a quiz sitting; 403 with the attempt status when blocked"""
    try:
        quiz = QuizService.get_quiz_definition(db, quiz_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    _check_can_attempt(db, user_id, quiz_id)
    session = registry.start(user_id, quiz)
    logger.info(f"Quiz session started: {session.session_id} user={user_id} quiz={quiz_id}")
    return session.to_dict()


@router.get("/sessions/{session_id}", response_model=dict)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """Current question, selection, feedback and progress"""
    return _get_owned_session(registry, session_id, user_id).to_dict()


@router.post("/sessions/{session_id}/select", response_model=dict)
async def select_answer(
    session_id: str,
    request: SelectAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """Toggle or replace the selection; ignored while feedback is shown"""
    session = _get_owned_session(registry, session_id, user_id)
    session.select_answer(request.answer_id)
    return session.to_dict()


@router.post("/sessions/{session_id}/submit", response_model=dict)
async def submit_answer(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """Grade the current selection and reveal feedback"""
    session = _get_owned_session(registry, session_id, user_id)
    session.submit_answer()
    return session.to_dict()


@router.post("/sessions/{session_id}/proceed", response_model=dict)
async def proceed(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """
    Move on after feedback

    When this completes the session the result is submitted. The response
    then carries either the completion or a save_error. A saved session is
    dropped from the registry; after a save_error it stays completed so the
    client can still read it or restart.
    """
    session = _get_owned_session(registry, session_id, user_id)
    completed = session.proceed()
    view = session.to_dict()
    if not completed:
        return view

    view["completion"] = None
    view["save_error"] = None
    try:
        completion = SubmissionService.submit_session(db, user_id, session)
        view["completion"] = CompletionResponse.from_model(completion).model_dump()
        registry.discard(session_id)
    except PolicyDeniedError as e:
        view["save_error"] = {
            "type": "policy_denied",
            "message": str(e),
            "status": e.to_dict(),
        }
    except StoreError as e:
        logger.error(f"Session {session_id} result not saved: {e}")
        view["save_error"] = {
            "type": "store_error",
            "message": "Results could not be saved",
            "status": None,
        }
    return view


@router.post("/sessions/{session_id}/restart", response_model=dict)
async def restart_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    registry: QuizSessionRegistry = Depends(get_session_registry)
):
    """New sitting of the same quiz under a fresh session id"""
    session = _get_owned_session(registry, session_id, user_id)
    _check_can_attempt(db, user_id, session.quiz.id)

    session.restart()
    registry.rekey(session_id, session)
    return session.to_dict()
