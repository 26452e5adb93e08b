"""
Quiz completion store
Graded results, best-score bookkeeping and the progress rollup
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.database import store_operation
from app.core.exceptions import PolicyDeniedError, ValidationError
from app.core.progress import apply_completion, calculate_quiz_progress, calculate_quiz_stats
from app.core.quiz_session import utcnow
from app.models import QuizCompletion, QuizQuestion, UserProgress
from app.services.continuation_service import ContinuationService
from app.services.progress_service import ProgressService
from app.services.quiz_service import QuizService

logger = logging.getLogger(__name__)


class CompletionService:
    """Completion persistence"""

    @staticmethod
    def _validate_submission(
        db: Session,
        quiz_id: str,
        percentage: int,
        max_score: int,
        time_spent: int,
        answers: List[Dict[str, Any]]
    ):
        """
        Check a submission before anything is written

        Returns:
            Quiz: the quiz row

        Raises:
            ValidationError: malformed submission or unknown quiz/question
        """
        if not isinstance(percentage, int) or not 0 <= percentage <= 100:
            raise ValidationError("percentage must be an integer between 0 and 100")
        if max_score <= 0:
            raise ValidationError("max_score must be positive")
        if time_spent < 0:
            raise ValidationError("time_spent must not be negative")
        if not answers:
            raise ValidationError("answers must not be empty")

        quiz = QuizService.find_quiz(db, quiz_id)
        if not quiz:
            raise ValidationError(f"Unknown quiz: {quiz_id}")

        question_ids = {
            row.id for row in db.query(QuizQuestion.id).filter(QuizQuestion.quiz_id == quiz_id)
        }
        unknown = [a.get("question_id") for a in answers if a.get("question_id") not in question_ids]
        if unknown:
            raise ValidationError(f"Answers reference questions not in this quiz: {unknown}")

        return quiz

    @staticmethod
    def create_completion(
        db: Session,
        user_id: str,
        quiz_id: str,
        percentage: int,
        answers: List[Dict[str, Any]],
        max_score: int = 100,
        time_spent: int = 0,
        content_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> QuizCompletion:
        """
        Record a graded quiz result

        One transaction: policy check (limits row locked), best-score read,
        conditional insert, rollup update and attempt recording commit or
        roll back together. A new row is inserted only when the percentage
        beats the user's best; otherwise the existing best is returned
        unchanged. The attempt is recorded either way.

        Args:
            db: database session
            user_id: user ID
            quiz_id: quiz ID
            percentage: 0-100
            answers: final answer per question
                [{"question_id", "selected_answers", "is_correct", "points"}]
            max_score: maximum raw score
            time_spent: seconds
            content_id: related episode (defaults to the quiz's episode)
            now: completion time (naive UTC)

        Returns:
            QuizCompletion: the new row, or the pre-existing best

        Raises:
            ValidationError: malformed submission
            PolicyDeniedError: attempt blocked by the continuation policy
            StoreError: persistence failure
        """
        now = now or utcnow()
        quiz = CompletionService._validate_submission(
            db, quiz_id, percentage, max_score, time_spent, answers
        )

        status = ContinuationService.check_attempt_limits(
            db, user_id, quiz_id, now=now, commit=False, for_update=True
        )
        if not status.can_attempt:
            db.rollback()
            logger.warning(f"Completion denied: user={user_id} quiz={quiz_id}: {status.message}")
            raise PolicyDeniedError(status)

        passed = percentage >= QuizService.pass_percentage_for(quiz)
        score = int(round(percentage * max_score / 100))

        with store_operation(db, "create_completion"):
            prior_count = db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).count()

            best = db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).order_by(
                QuizCompletion.percentage.desc(),
                QuizCompletion.completed_at.asc()
            ).with_for_update().first()

            if best is None or percentage > best.percentage:
                result = QuizCompletion(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    quiz_id=quiz_id,
                    content_id=content_id or quiz.content_id,
                    score=score,
                    max_score=max_score,
                    percentage=percentage,
                    time_spent=time_spent,
                    completed_at=now,
                    answers=list(answers),
                    passed=passed,
                    attempts=prior_count + 1
                )
                db.add(result)

                progress = ProgressService.get_or_create_progress(db, user_id)
                new_badges = apply_completion(progress, result)
                progress.updated_at = now
                logger.info(
                    f"Completion stored: user={user_id} quiz={quiz_id} "
                    f"percentage={percentage} passed={passed} attempt={result.attempts}"
                )
                if new_badges:
                    logger.info(f"Badges awarded to {user_id}: {[b['id'] for b in new_badges]}")
            else:
                result = best
                logger.info(
                    f"Completion not stored (best {best.percentage} >= {percentage}): "
                    f"user={user_id} quiz={quiz_id}"
                )

            ContinuationService.record_attempt(
                db, user_id, quiz_id, passed, now=now, commit=False
            )
            db.commit()
            db.refresh(result)

        return result

    @staticmethod
    def find_completion_by_id(db: Session, completion_id: str) -> Optional[QuizCompletion]:
        with store_operation(db, "find_completion_by_id"):
            return db.query(QuizCompletion).filter(QuizCompletion.id == completion_id).first()

    @staticmethod
    def find_completions_by_user(db: Session, user_id: str) -> List[QuizCompletion]:
        """All of a user's completions, newest first"""
        with store_operation(db, "find_completions_by_user"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id
            ).order_by(QuizCompletion.completed_at.desc()).all()

    @staticmethod
    def find_completions_by_quiz(db: Session, quiz_id: str) -> List[QuizCompletion]:
        with store_operation(db, "find_completions_by_quiz"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.quiz_id == quiz_id
            ).order_by(QuizCompletion.completed_at.desc()).all()

    @staticmethod
    def find_completions_by_content(db: Session, content_id: str) -> List[QuizCompletion]:
        with store_operation(db, "find_completions_by_content"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.content_id == content_id
            ).order_by(QuizCompletion.completed_at.desc()).all()

    @staticmethod
    def has_user_completed_quiz(db: Session, user_id: str, quiz_id: str) -> bool:
        with store_operation(db, "has_user_completed_quiz"):
            return db.query(QuizCompletion.id).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).first() is not None

    @staticmethod
    def has_user_passed_quiz(db: Session, user_id: str, quiz_id: str) -> bool:
        with store_operation(db, "has_user_passed_quiz"):
            return db.query(QuizCompletion.id).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id,
                QuizCompletion.passed == True
            ).first() is not None

    @staticmethod
    def get_user_best_score(db: Session, user_id: str, quiz_id: str) -> Optional[QuizCompletion]:
        """Highest-percentage completion; ties go to the earliest"""
        with store_operation(db, "get_user_best_score"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).order_by(
                QuizCompletion.percentage.desc(),
                QuizCompletion.completed_at.asc()
            ).first()

    @staticmethod
    def get_user_quiz_attempts(db: Session, user_id: str, quiz_id: str) -> int:
        """
        Number of persisted completions

        Not the continuation attempt counter: non-improving submissions
        consume an attempt without adding a row.
        """
        with store_operation(db, "get_user_quiz_attempts"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).count()

    @staticmethod
    def delete_completion(db: Session, completion_id: str, user_id: Optional[str] = None) -> bool:
        """
        Hard delete

        The progress rollup is left as is. With user_id, only that
        user's completion can be removed.

        Returns:
            bool: False if nothing matched
        """
        with store_operation(db, "delete_completion"):
            query = db.query(QuizCompletion).filter(QuizCompletion.id == completion_id)
            if user_id is not None:
                query = query.filter(QuizCompletion.user_id == user_id)
            completion = query.first()
            if not completion:
                return False

            db.delete(completion)
            db.commit()

        logger.info(f"Completion deleted: {completion_id}")
        return True

    @staticmethod
    def get_recent_completions(db: Session, limit: int = 10) -> List[QuizCompletion]:
        with store_operation(db, "get_recent_completions"):
            return db.query(QuizCompletion).order_by(
                QuizCompletion.completed_at.desc()
            ).limit(limit).all()

    @staticmethod
    def get_user_recent_completions(db: Session, user_id: str, limit: int = 5) -> List[QuizCompletion]:
        with store_operation(db, "get_user_recent_completions"):
            return db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id
            ).order_by(QuizCompletion.completed_at.desc()).limit(limit).all()

    @staticmethod
    def get_quiz_stats(db: Session, quiz_id: str) -> Dict[str, int]:
        """Aggregates over every user's completions of a quiz"""
        return calculate_quiz_stats(CompletionService.find_completions_by_quiz(db, quiz_id))

    @staticmethod
    def get_quiz_progress(db: Session, user_id: str, quiz_id: str) -> Optional[Dict[str, Any]]:
        with store_operation(db, "get_quiz_progress"):
            completions = db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id,
                QuizCompletion.quiz_id == quiz_id
            ).all()
        return calculate_quiz_progress(completions, quiz_id)

    @staticmethod
    def get_leaderboard(db: Session, limit: int = 10) -> List[UserProgress]:
        """Rollups by average score, then number of completions"""
        with store_operation(db, "get_leaderboard"):
            return db.query(UserProgress).order_by(
                UserProgress.average_score.desc(),
                UserProgress.total_quizzes_completed.desc()
            ).limit(limit).all()
