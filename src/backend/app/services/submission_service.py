"""
Completion submission
Turns a completed QuizSession into a stored completion
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.core.quiz_session import QuizSession, SessionPhase, utcnow
from app.models import QuizCompletion
from app.services.completion_service import CompletionService

logger = logging.getLogger(__name__)


class SubmissionService:
    """Glue between the session state machine and the completion store"""

    @staticmethod
    def build_answers(session: QuizSession) -> List[Dict[str, Any]]:
        """
        Final attempt per question, in attempt order

        Each correct question is worth round(100 / number of questions) points.
        """
        total = len(session.quiz.questions) if session.quiz else 0
        points_each = round(100 / total) if total else 0

        return [
            {
                "question_id": attempt.question_id,
                "selected_answers": sorted(attempt.selected_answer_ids),
                "is_correct": attempt.is_correct,
                "points": points_each if attempt.is_correct else 0,
            }
            for attempt in session.final_attempts().values()
        ]

    @staticmethod
    def submit_session(
        db: Session,
        user_id: str,
        session: QuizSession,
        now: Optional[datetime] = None
    ) -> QuizCompletion:
        """
        Persist the result of a completed session

        The session itself is never modified here: if the store denies or
        fails, it stays completed and the caller decides what to show.

        Args:
            db: database session
            user_id: session owner
            session: a session in the completed phase
            now: submission time (naive UTC)

        Returns:
            QuizCompletion: the new completion, or the user's existing best

        Raises:
            ValidationError: session not completed
            PolicyDeniedError: attempt blocked by the continuation policy
            StoreError: persistence failure
        """
        if session.phase is not SessionPhase.COMPLETED:
            raise ValidationError("Quiz session is not completed")

        now = now or utcnow()
        score = session.score()

        completion = CompletionService.create_completion(
            db,
            user_id=user_id,
            quiz_id=session.quiz.id,
            percentage=score.percentage,
            max_score=100,
            answers=SubmissionService.build_answers(session),
            time_spent=session.elapsed_seconds(now),
            content_id=session.quiz.content_id,
            now=now,
        )
        logger.info(
            f"Session {session.session_id} submitted: user={user_id} "
            f"quiz={session.quiz.id} score={score.correct}/{score.total}"
        )
        return completion
