"""
User progress rollup
One row per user, created on the first persisted completion.
Monotonic and best-effort: deleting a completion does not recompute it.
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from datetime import datetime

from .base import Base


class UserProgress(Base):
    """Cumulative quiz statistics and earned badges"""
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    total_quizzes_completed = Column(Integer, default=0)
    total_quizzes_passed = Column(Integer, default=0)
    total_score = Column(Integer, default=0)
    total_max_score = Column(Integer, default=0)
    average_score = Column(Integer, default=0)  # round(100 * total_score / total_max_score)
    total_time_spent = Column(Integer, default=0)  # seconds
    completion_rate = Column(Integer, default=0)  # round(100 * passed / completed)
    last_activity_at = Column(DateTime, nullable=True)
    streak_days = Column(Integer, default=0)  # not maintained, derived on read
    badges = Column(JSON, nullable=False, default=dict)  # badge id -> badge
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # optimistic locking: concurrent rollup writes raise StaleDataError
    __mapper_args__ = {"version_id_col": version}

    def badge_list(self) -> list:
        """Badges ordered by award time"""
        return sorted((self.badges or {}).values(), key=lambda b: b.get("earned_at") or "")

    def to_dict(self, streak_days: int | None = None) -> dict:
        return {
            "user_id": self.user_id,
            "total_quizzes_completed": self.total_quizzes_completed or 0,
            "total_quizzes_passed": self.total_quizzes_passed or 0,
            "total_score": self.total_score or 0,
            "total_max_score": self.total_max_score or 0,
            "average_score": self.average_score or 0,
            "total_time_spent": self.total_time_spent or 0,
            "completion_rate": self.completion_rate or 0,
            "last_activity_at": self.last_activity_at.isoformat() if self.last_activity_at else None,
            "streak_days": self.streak_days if streak_days is None else streak_days,
            "badges": self.badge_list(),
        }

    def __repr__(self):
        return f"<UserProgress(user='{self.user_id}' completed={self.total_quizzes_completed} avg={self.average_score})>"
