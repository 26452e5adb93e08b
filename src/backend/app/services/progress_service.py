"""
User progress service
Rollup rows and read-time progress summaries
"""
import uuid
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import GradingConfig, get_grading_config
from app.core.database import store_operation
from app.core.progress import calculate_streak_days, summarize_progress
from app.models import Episode, QuizCompletion, UserProgress


class ProgressService:
    """Per-user progress rollup"""

    @staticmethod
    def find_progress(db: Session, user_id: str) -> Optional[UserProgress]:
        with store_operation(db, "find_progress"):
            return db.query(UserProgress).filter(UserProgress.user_id == user_id).first()

    @staticmethod
    def get_or_create_progress(db: Session, user_id: str) -> UserProgress:
        """
        Rollup row for a user, created empty if missing

        Does not commit; the caller owns the transaction.
        """
        progress = db.query(UserProgress).filter(UserProgress.user_id == user_id).first()
        if progress:
            return progress

        progress = UserProgress(
            id=str(uuid.uuid4()),
            user_id=user_id,
            total_quizzes_completed=0,
            total_quizzes_passed=0,
            total_score=0,
            total_max_score=0,
            average_score=0,
            total_time_spent=0,
            completion_rate=0,
            streak_days=0,
            badges={}
        )
        db.add(progress)
        return progress

    @staticmethod
    def get_progress(db: Session, user_id: str, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
        """
        Stored rollup with the streak derived from completion dates

        The rollup is monotonic and best-effort: deleting a completion does
        not recompute it. Use get_progress_summary() for figures derived
        from the current completion rows.

        Returns:
            dict | None: None if the user has no persisted completion yet
        """
        progress = ProgressService.find_progress(db, user_id)
        if not progress:
            return None

        with store_operation(db, "get_progress"):
            completions = db.query(QuizCompletion.completed_at).filter(
                QuizCompletion.user_id == user_id
            ).all()

        return progress.to_dict(streak_days=calculate_streak_days(completions, today))

    @staticmethod
    def get_progress_summary(
        db: Session,
        user_id: str,
        today: Optional[date] = None,
        grading: Optional[GradingConfig] = None
    ) -> Dict[str, Any]:
        """
        Progress summary recomputed from all of the user's completions

        Args:
            db: database session
            user_id: user ID
            today: reference date for the streak (defaults to UTC today)
            grading: CPD credit settings (defaults from the environment)

        Returns:
            dict: see app.core.progress.summarize_progress
        """
        with store_operation(db, "get_progress_summary"):
            completions = db.query(QuizCompletion).filter(
                QuizCompletion.user_id == user_id
            ).all()

            content_ids = {c.content_id for c in completions if c.content_id}
            durations = {}
            if content_ids:
                durations = {
                    episode_id: duration
                    for episode_id, duration in db.query(Episode.id, Episode.duration).filter(
                        Episode.id.in_(content_ids)
                    )
                }

        return summarize_progress(completions, durations, grading or get_grading_config(), today)
