"""
Quiz continuation service
Loads and stores per-(user, quiz) attempt limits; decisions come from ContinuationPolicy
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import ContinuationConfig, get_continuation_config
from app.core.continuation import AttemptWindow, ContinuationPolicy, ContinuationStatus
from app.core.database import store_operation
from app.core.quiz_session import percentage_of, utcnow
from app.models import Quiz, QuizCompletion, QuizContinuationLimit

logger = logging.getLogger(__name__)


class ContinuationService:
    """Attempt budget, cooldown and reset bookkeeping"""

    @staticmethod
    def _get_limit(
        db: Session,
        user_id: str,
        quiz_id: str,
        for_update: bool = False
    ) -> Optional[QuizContinuationLimit]:
        query = db.query(QuizContinuationLimit).filter(
            QuizContinuationLimit.user_id == user_id,
            QuizContinuationLimit.quiz_id == quiz_id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def _policy(
        db: Session,
        quiz_id: str,
        limit: Optional[QuizContinuationLimit],
        config: Optional[ContinuationConfig] = None
    ) -> ContinuationPolicy:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        return ContinuationPolicy.for_quiz(
            config or get_continuation_config(),
            quiz=quiz,
            custom_max_attempts=limit.custom_max_attempts if limit else None
        )

    @staticmethod
    def _window(limit: Optional[QuizContinuationLimit]) -> Optional[AttemptWindow]:
        if limit is None:
            return None
        return AttemptWindow(
            attempts_used=limit.attempts_used or 0,
            reset_at=limit.reset_at,
            last_attempt_at=limit.last_attempt_at,
            last_attempt_passed=limit.last_attempt_passed,
            blocked_until=limit.blocked_until,
        )

    @staticmethod
    def _store_window(limit: QuizContinuationLimit, window: AttemptWindow) -> None:
        limit.attempts_used = window.attempts_used
        limit.reset_at = window.reset_at
        limit.last_attempt_at = window.last_attempt_at
        limit.last_attempt_passed = window.last_attempt_passed
        limit.blocked_until = window.blocked_until

    @staticmethod
    def check_attempt_limits(
        db: Session,
        user_id: str,
        quiz_id: str,
        now: Optional[datetime] = None,
        commit: bool = True,
        for_update: bool = False
    ) -> ContinuationStatus:
        """
        Attempt-status check

        An expired window is reset and written back; otherwise nothing is
        stored, and no row is created for a user who never attempted.

        Args:
            db: database session
            user_id: user ID
            quiz_id: quiz ID
            now: evaluation time (naive UTC)
            commit: commit the expiry reset (False inside a larger transaction)
            for_update: lock the limits row

        Returns:
            ContinuationStatus: attempt-status payload
        """
        now = now or utcnow()

        with store_operation(db, "check_attempt_limits"):
            limit = ContinuationService._get_limit(db, user_id, quiz_id, for_update=for_update)
            policy = ContinuationService._policy(db, quiz_id, limit)
            check = policy.evaluate(ContinuationService._window(limit), now)

            if check.reset_window is not None:
                ContinuationService._store_window(limit, check.reset_window)
                logger.info(f"Attempt window expired, reset: user={user_id} quiz={quiz_id}")
                if commit:
                    db.commit()
                else:
                    db.flush()

        return check.status

    @staticmethod
    def record_attempt(
        db: Session,
        user_id: str,
        quiz_id: str,
        passed: bool,
        now: Optional[datetime] = None,
        commit: bool = True
    ) -> QuizContinuationLimit:
        """
        Consume one attempt

        Creates the limits row on first use. A failed attempt starts the
        cooldown; a passed one does not.

        Args:
            db: database session
            user_id: user ID
            quiz_id: quiz ID
            passed: attempt outcome
            now: attempt time (naive UTC)
            commit: commit immediately (False inside a larger transaction)

        Returns:
            QuizContinuationLimit: the updated row
        """
        now = now or utcnow()

        with store_operation(db, "record_attempt"):
            limit = ContinuationService._get_limit(db, user_id, quiz_id, for_update=True)
            policy = ContinuationService._policy(db, quiz_id, limit)
            window = policy.record(ContinuationService._window(limit), now, passed)

            if limit is None:
                limit = QuizContinuationLimit(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    quiz_id=quiz_id,
                    created_at=now
                )
                db.add(limit)

            ContinuationService._store_window(limit, window)
            limit.updated_at = now

            if commit:
                db.commit()
                db.refresh(limit)
            else:
                db.flush()

        logger.info(
            f"Attempt recorded: user={user_id} quiz={quiz_id} passed={passed} "
            f"used={window.attempts_used}/{policy.max_attempts}"
        )
        return limit

    @staticmethod
    def reset_user_attempts(
        db: Session,
        user_id: str,
        quiz_id: str,
        now: Optional[datetime] = None
    ) -> Optional[QuizContinuationLimit]:
        """
        Zero the attempt counter and clear cooldowns, starting a fresh window

        Returns:
            QuizContinuationLimit | None: the reset row, None if the user never attempted
        """
        now = now or utcnow()

        with store_operation(db, "reset_user_attempts"):
            limit = ContinuationService._get_limit(db, user_id, quiz_id, for_update=True)
            if limit is None:
                return None

            policy = ContinuationService._policy(db, quiz_id, limit)
            ContinuationService._store_window(limit, policy.fresh_window(now))
            limit.updated_at = now
            db.commit()
            db.refresh(limit)

        logger.info(f"Attempts reset: user={user_id} quiz={quiz_id}")
        return limit

    @staticmethod
    def set_custom_max_attempts(
        db: Session,
        user_id: str,
        quiz_id: str,
        max_attempts: Optional[int],
        now: Optional[datetime] = None
    ) -> QuizContinuationLimit:
        """
        Per-user attempt budget override (None removes it)

        Raises:
            ValueError: max_attempts below 1
        """
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        now = now or utcnow()

        with store_operation(db, "set_custom_max_attempts"):
            limit = ContinuationService._get_limit(db, user_id, quiz_id, for_update=True)
            if limit is None:
                policy = ContinuationService._policy(db, quiz_id, None)
                limit = QuizContinuationLimit(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    quiz_id=quiz_id,
                    created_at=now
                )
                ContinuationService._store_window(limit, policy.fresh_window(now))
                db.add(limit)

            limit.custom_max_attempts = max_attempts
            limit.updated_at = now
            db.commit()
            db.refresh(limit)

        logger.info(f"Custom attempt limit set: user={user_id} quiz={quiz_id} max={max_attempts}")
        return limit

    @staticmethod
    def get_remaining_attempts(
        db: Session,
        user_id: str,
        quiz_id: str,
        now: Optional[datetime] = None
    ) -> int:
        status = ContinuationService.check_attempt_limits(db, user_id, quiz_id, now=now)
        return status.attempts_remaining

    @staticmethod
    def get_next_attempt_available_time(
        db: Session,
        user_id: str,
        quiz_id: str,
        now: Optional[datetime] = None
    ) -> Optional[datetime]:
        """None when an attempt is allowed right now"""
        status = ContinuationService.check_attempt_limits(db, user_id, quiz_id, now=now)
        return status.next_attempt_available_at

    @staticmethod
    def get_continuation_stats(db: Session, quiz_id: str) -> Dict[str, Any]:
        """
        Attempt usage across all users of a quiz

        completion_rate_by_attempt[n] is the share of users who used at
        least n attempts and hold a passed completion for the quiz.

        Returns:
            dict: total_users, average_attempts_used, completion_rate_by_attempt
        """
        with store_operation(db, "get_continuation_stats"):
            limits = db.query(QuizContinuationLimit).filter(
                QuizContinuationLimit.quiz_id == quiz_id
            ).all()
            passed_users = {
                row.user_id
                for row in db.query(QuizCompletion.user_id).filter(
                    QuizCompletion.quiz_id == quiz_id,
                    QuizCompletion.passed == True
                ).distinct()
            }
            policy = ContinuationService._policy(db, quiz_id, None)

        if not limits:
            return {
                "total_users": 0,
                "average_attempts_used": 0,
                "completion_rate_by_attempt": [],
            }

        rates = []
        for attempt in range(1, policy.max_attempts + 1):
            reached = [l for l in limits if (l.attempts_used or 0) >= attempt]
            completed = sum(1 for l in reached if l.user_id in passed_users)
            rates.append({
                "attempt": attempt,
                "completion_rate": percentage_of(completed, len(reached)),
            })

        return {
            "total_users": len(limits),
            "average_attempts_used": round(sum(l.attempts_used or 0 for l in limits) / len(limits), 2),
            "completion_rate_by_attempt": rates,
        }
